"""入口清单加载

两种入口:
  - from_fs:   读取项目根目录下的 package.json，安装其 dependencies + devDependencies
  - from_argv: 只安装命令行显式指定的包，不读取项目自身的依赖字段

两者都返回种子 FrontierItem 列表（目前恒为一个，install_target 即项目根目录）。
清单读取失败属于致命错误，在任何网络请求之前抛出 ManifestError。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Sequence

from depflow.core.exceptions import ManifestError
from depflow.core.install.models import (
    DEPENDENCIES,
    DEV_DEPENDENCIES,
    FrontierItem,
    RootManifest,
)

logger = logging.getLogger(__name__)

DEFAULT_RANGE = "latest"


def parse_request(request: str) -> tuple[str, str]:
    """解析 'name@range' 形式的包请求，支持 scoped 包名

    >>> parse_request("@types/node@^20")
    ('@types/node', '^20')
    >>> parse_request("lodash")
    ('lodash', 'latest')
    """
    request = request.strip()
    at = request.rfind("@")
    if at > 0:
        name, rng = request[:at], request[at + 1:]
    else:
        name, rng = request, ""
    if not name or name == "@" or (name.startswith("@") and "/" not in name):
        raise ManifestError(f"无效的包请求: '{request}'")
    return name, rng.strip() or DEFAULT_RANGE


def _dep_field(data: dict[str, Any], key: str, path: Path) -> dict[str, str]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ManifestError(f"{path} 中的 {key} 必须是对象")
    bad = [k for k, v in value.items() if not isinstance(v, str)]
    if bad:
        raise ManifestError(f"{path} 中 {key} 的版本范围必须是字符串: {bad}")
    return value


class EntryLoader:
    """入口清单加载器"""

    def __init__(self, manifest_name: str = "package.json") -> None:
        self.manifest_name = manifest_name

    def from_fs(self, project_root: Path) -> list[FrontierItem]:
        """读取项目清单作为唯一种子"""
        root = Path(project_root).resolve()
        path = root / self.manifest_name
        if not path.is_file():
            raise ManifestError(f"项目清单不存在: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestError(f"项目清单无法读取: {path} - {e}") from e
        if not isinstance(data, dict):
            raise ManifestError(f"项目清单顶层必须是对象: {path}")

        manifest = RootManifest(
            path=root,
            name=str(data.get("name", "")),
            version=str(data.get("version", "")),
            dependencies=_dep_field(data, DEPENDENCIES, path),
            dev_dependencies=_dep_field(data, DEV_DEPENDENCIES, path),
        )
        logger.info(
            "已加载项目清单: %s (%d 个依赖, %d 个开发依赖)",
            path, len(manifest.dependencies), len(manifest.dev_dependencies),
        )
        return [FrontierItem(install_target=root, metadata=manifest)]

    def from_argv(self, project_root: Path, requested: Sequence[str]) -> list[FrontierItem]:
        """把命令行请求的包合并成一个合成清单作为唯一种子"""
        if not requested:
            raise ManifestError("未指定要安装的包")
        root = Path(project_root).resolve()
        deps: dict[str, str] = {}
        for req in requested:
            name, rng = parse_request(req)
            deps[name] = rng
        logger.info("显式安装 %d 个包: %s", len(deps), ", ".join(sorted(deps)))
        manifest = RootManifest(path=root, dependencies=deps)
        return [FrontierItem(install_target=root, metadata=manifest)]
