"""服务容器: 统一依赖注入，CLI 不直接构造各组件

同一容器内的实例共享状态（例如注册表客户端的 packument 缓存）。
CLI 通过 get_container() 获取组件，而非直接 import 构造。

依赖关系图（→ 表示依赖）:
  installer → registry, downloader
  其余组件均为独立实例

用法:
    container = ServiceContainer()
    client = container.registry                   # 懒加载
    installer = container.installer(Path.cwd())   # 每次安装新建

    # 显式注入配置
    cfg = Config.from_file("my_config.yml")
    container = ServiceContainer(config=cfg)
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from depflow.core.config import Config
    from depflow.core.install.entry import EntryLoader
    from depflow.core.install.fetcher import TarballDownloader
    from depflow.core.install.installer import Installer
    from depflow.core.install.registry import RegistryClient
    from depflow.core.protocols import ProgressReporter

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器，每个实例持有一组共享的组件"""

    def __init__(self, config: Config | None = None) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from depflow.core.config import get_config
            config = get_config()
        self._config = config

    @property
    def config(self) -> Config:
        return self._config

    @property
    def registry(self) -> RegistryClient:
        if "registry" not in self._instances:
            from depflow.core.install.registry import RegistryClient
            self._instances["registry"] = RegistryClient(
                self._config.registry_url,
                timeout=self._config.request_timeout,
            )
        return self._instances["registry"]  # type: ignore[return-value]

    @property
    def downloader(self) -> TarballDownloader:
        if "downloader" not in self._instances:
            from depflow.core.install.fetcher import TarballDownloader
            self._instances["downloader"] = TarballDownloader(
                timeout=self._config.request_timeout,
            )
        return self._instances["downloader"]  # type: ignore[return-value]

    @property
    def entry_loader(self) -> EntryLoader:
        if "entry_loader" not in self._instances:
            from depflow.core.install.entry import EntryLoader
            self._instances["entry_loader"] = EntryLoader(
                manifest_name=self._config.manifest,
            )
        return self._instances["entry_loader"]  # type: ignore[return-value]

    def installer(
        self, project_root: Path, *, reporter: ProgressReporter | None = None,
    ) -> Installer:
        """新建一次安装的编排器（去重集合的生命周期 = 一次安装，不缓存）"""
        from depflow.core.install.installer import Installer
        return Installer(
            project_root,
            self.registry,
            self.downloader,
            modules_dir=self._config.modules_dir,
            resolve_workers=self._config.resolve_workers,
            fetch_workers=self._config.fetch_workers,
            link_workers=self._config.link_workers,
            reporter=reporter,
        )


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is None:
        with _global_lock:
            if _global is None:
                _global = ServiceContainer()
    return _global


def reset_container() -> None:
    """重置全局容器（配置变更后 / 测试隔离）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
