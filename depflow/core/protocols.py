"""领域协议定义

集中定义安装流水线与外部协作者之间的接口契约（Protocol），
流水线只依赖这些协议，测试时可直接注入假实现。

使用 typing.Protocol 而非 ABC，使得现有类无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from depflow.core.install.models import PackageMetadata


# =========================================================================
# 注册表协议
# =========================================================================

class PackageRegistry(Protocol):
    """注册表客户端协议

    把 (包名, 版本范围) 解析为具体版本的包元信息。
    失败时抛出 RegistryError（not_found / range_unsatisfiable / network）。
    """

    def resolve(self, name: str, version_range: str) -> PackageMetadata:
        ...


# =========================================================================
# 内容下载协议
# =========================================================================

class ContentDownloader(Protocol):
    """包内容下载协议

    把 url 指向的包内容下载、校验后放到 destination。
    失败时抛出 FetchError（network / checksum / write），
    且不得在 destination 留下看似完整的目录。
    """

    def download(self, url: str, digest: str, destination: Path) -> None:
        ...


# =========================================================================
# 进度汇报协议
# =========================================================================

class ProgressReporter(Protocol):
    """进度汇报协议: 即发即忘，返回值不被使用

    可能被多个工作线程并发调用，实现必须线程安全。
    """

    def start(self, label: str) -> None:
        ...

    def complete(self, label: str) -> None:
        ...
