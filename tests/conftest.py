"""共享测试夹具: 内存注册表 + 记录型下载器"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Callable

import pytest

from depflow.core.exceptions import FetchError, RegistryError
from depflow.core.install.models import PackageMetadata
from depflow.core.install.ranges import max_satisfying


def make_meta(
    name: str,
    version: str,
    digest: str,
    deps: dict[str, str] | None = None,
    dev: dict[str, str] | None = None,
) -> PackageMetadata:
    return PackageMetadata(
        name=name,
        version=version,
        content_digest=digest,
        download_url=f"https://registry.test/{name}/-/{name}-{version}.tgz",
        dependencies=deps or {},
        dev_dependencies=dev or {},
    )


class FakeRegistry:
    """内存注册表，按 npm 范围从已登记版本中选最高版本"""

    def __init__(self) -> None:
        self._packages: dict[str, dict[str, PackageMetadata]] = {}
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str]] = []

    def add(self, name: str, version: str, digest: str, deps=None, dev=None) -> PackageMetadata:
        meta = make_meta(name, version, digest, deps, dev)
        self._packages.setdefault(name, {})[version] = meta
        return meta

    def resolve(self, name: str, version_range: str) -> PackageMetadata:
        with self._lock:
            self.calls.append((name, version_range))
        versions = self._packages.get(name)
        if not versions:
            raise RegistryError(f"not found: {name}", RegistryError.NOT_FOUND, name)
        rng = "" if version_range == "latest" else version_range
        chosen = max_satisfying(versions, rng)
        if chosen is None:
            raise RegistryError(
                f"no version of {name} satisfies {version_range}",
                RegistryError.RANGE_UNSATISFIABLE, name,
            )
        return versions[chosen]


class RecordingDownloader:
    """记录下载调用，在目标位置创建一个仅含 package.json 的目录"""

    def __init__(self, fail_digests: set[str] | None = None) -> None:
        self.fail_digests = fail_digests or set()
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str, Path]] = []

    def download(self, url: str, digest: str, destination: Path) -> None:
        with self._lock:
            self.calls.append((url, digest, destination))
        if digest in self.fail_digests:
            raise FetchError(f"checksum mismatch: {url}", FetchError.CHECKSUM)
        destination.mkdir(parents=True)
        (destination / "package.json").write_text(json.dumps({"digest": digest}))

    @property
    def digests(self) -> list[str]:
        return [d for _, d, _ in self.calls]


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def downloader() -> RecordingDownloader:
    return RecordingDownloader()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """已解析（resolve 后）的项目根目录，避免 /tmp 软链接导致路径比较失败"""
    root = tmp_path / "proj"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def write_manifest() -> Callable[..., Path]:
    def _write(root: Path, data: dict) -> Path:
        path = root / "package.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def meta_factory() -> Callable[..., PackageMetadata]:
    return make_meta
