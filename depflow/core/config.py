"""集中配置管理

提供统一的配置入口：注册表地址、安装目录名、各阶段并发上限等。
支持从 YAML 文件加载 + 环境变量 / 编程式覆盖。
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field

from depflow.core.exceptions import ConfigError
from depflow.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".depflow.yml"


@dataclass
class Config:
    """安装器全局配置"""

    # 注册表
    registry_url: str = "https://registry.npmjs.org"
    request_timeout: int = 30  # 秒

    # 目录 / 文件名
    modules_dir: str = "node_modules"
    manifest: str = "package.json"

    # 并发上限（解析 / 下载 / 链接各自独立的线程池）
    resolve_workers: int = 16
    fetch_workers: int = 8
    link_workers: int = 8

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("resolve_workers", "fetch_workers", "link_workers"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} 必须为正整数，实际: {value!r}")

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path} - {e}") from e
        cfg.extra = extra
        return cfg

    def apply_env(self) -> Config:
        """应用环境变量覆盖（DEPFLOW_REGISTRY）"""
        registry = os.getenv("DEPFLOW_REGISTRY", "")
        if registry:
            self.registry_url = registry
        return self

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config().apply_env()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path).apply_env()
    logger.info("配置已加载: %s", path)
    return _current
