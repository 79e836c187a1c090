"""安装流水线数据模型

数据类:
- PackageMetadata: 注册表返回的包元信息（不可变）
- RootManifest: 项目级清单（不可安装，无内容摘要）
- ResolvedDependency: 一条已解析的依赖边
- FrontierItem: 依赖图中的一个节点，流水线上传递的记录
- InstallFailure / InstallReport: 安装结果汇总
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Union

DEPENDENCIES = "dependencies"
DEV_DEPENDENCIES = "devDependencies"


def _freeze(deps: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(deps or {}))


@dataclass(frozen=True)
class PackageMetadata:
    """单个包版本的元信息，由注册表返回后不再修改"""

    name: str
    version: str
    content_digest: str   # dist.shasum
    download_url: str     # dist.tarball
    dependencies: Mapping[str, str] = field(default_factory=dict, hash=False)
    dev_dependencies: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", _freeze(self.dependencies))
        object.__setattr__(self, "dev_dependencies", _freeze(self.dev_dependencies))

    @property
    def spec(self) -> str:
        return f"{self.name}@{self.version}"

    @property
    def short_digest(self) -> str:
        return self.content_digest[:7]


@dataclass(frozen=True)
class RootManifest:
    """项目级清单（package.json 或命令行显式指定的包列表）"""

    path: Path
    name: str = ""
    version: str = ""
    dependencies: Mapping[str, str] = field(default_factory=dict, hash=False)
    dev_dependencies: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", _freeze(self.dependencies))
        object.__setattr__(self, "dev_dependencies", _freeze(self.dev_dependencies))


Manifest = Union[PackageMetadata, RootManifest]


@dataclass(frozen=True)
class ResolvedDependency:
    """一条已解析的依赖边

    install_target: <项目根>/node_modules/<内容摘要>，与发起方无关
    link_path:      <发起方 install_target>/node_modules/<包名>，与发起方相关
    """

    metadata: PackageMetadata
    install_target: Path
    link_path: Path
    parent_target: Path

    @property
    def name(self) -> str:
        return self.metadata.name


@dataclass(frozen=True)
class FrontierItem:
    """依赖图节点

    dependency 为 None 表示种子节点（项目根的回显），
    种子不可安装，下游的下载 / 链接阶段按 is_seed 标记跳过。
    """

    install_target: Path
    metadata: Manifest
    dependency: ResolvedDependency | None = None

    @property
    def is_seed(self) -> bool:
        return self.dependency is None

    @property
    def label(self) -> str:
        if isinstance(self.metadata, PackageMetadata):
            return self.metadata.spec
        return self.metadata.name or str(self.install_target)

    def declared(self, include_dev: bool) -> dict[str, str]:
        """合并需要展开的依赖字段；同名时 devDependencies 覆盖 dependencies"""
        merged = dict(self.metadata.dependencies)
        if include_dev:
            merged.update(self.metadata.dev_dependencies)
        return merged

    @classmethod
    def from_resolved(cls, dep: ResolvedDependency) -> FrontierItem:
        return cls(install_target=dep.install_target, metadata=dep.metadata, dependency=dep)


@dataclass(frozen=True)
class InstallFailure:
    """单条依赖边在某一阶段的失败记录"""

    stage: str            # "resolve", "fetch", "link"
    package: str          # name@range 或 name@version
    message: str
    kind: str = ""
    root_edge: bool = False  # 项目根直接声明的依赖


@dataclass
class InstallReport:
    """一次安装调用的结果汇总"""

    resolved: list[ResolvedDependency] = field(default_factory=list)
    fetched: list[ResolvedDependency] = field(default_factory=list)
    linked: list[ResolvedDependency] = field(default_factory=list)
    failures: list[InstallFailure] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.failures and not self.cancelled

    def failures_for(self, stage: str) -> list[InstallFailure]:
        return [f for f in self.failures if f.stage == stage]

    def summary(self) -> dict[str, int]:
        return {
            "resolved": len(self.resolved),
            "fetched": len(self.fetched),
            "linked": len(self.linked),
            "failed": len(self.failures),
        }
