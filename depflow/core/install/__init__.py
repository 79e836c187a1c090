"""安装流水线

模块划分:
- models.py:    数据模型
- ranges.py:    npm 版本范围匹配
- registry.py:  注册表客户端
- entry.py:     入口清单加载
- resolver.py:  单条依赖边解析
- frontier.py:  依赖图展开
- broadcast.py: 共享广播与去重阶段基类
- fetcher.py:   包内容拉取
- linker.py:    符号链接
- installer.py: 编排器
"""

from depflow.core.install.entry import EntryLoader
from depflow.core.install.fetcher import PackageFetcher, TarballDownloader
from depflow.core.install.installer import Installer
from depflow.core.install.linker import Linker, force_symlink
from depflow.core.install.models import (
    FrontierItem,
    InstallFailure,
    InstallReport,
    PackageMetadata,
    ResolvedDependency,
    RootManifest,
)
from depflow.core.install.registry import RegistryClient

__all__ = [
    "EntryLoader",
    "FrontierItem",
    "InstallFailure",
    "InstallReport",
    "Installer",
    "Linker",
    "PackageFetcher",
    "PackageMetadata",
    "RegistryClient",
    "ResolvedDependency",
    "RootManifest",
    "TarballDownloader",
    "force_symlink",
]
