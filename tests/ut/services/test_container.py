"""ServiceContainer 单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

import depflow.core.config as cfgmod
from depflow.core.exceptions import ValidationError
from depflow.core.install.entry import EntryLoader
from depflow.core.install.fetcher import TarballDownloader
from depflow.core.install.installer import Installer
from depflow.core.install.registry import RegistryClient
from depflow.core.progress import LogProgressReporter
from depflow.services.container import (
    ServiceContainer,
    get_container,
    reset_container,
)


@pytest.fixture(autouse=True)
def _setup_config(monkeypatch: pytest.MonkeyPatch):
    """确保测试使用独立的配置"""
    cfg = cfgmod.Config(
        registry_url="http://registry.local:4873",
        request_timeout=5,
        modules_dir="deps",
        manifest="deps.json",
        resolve_workers=3,
        fetch_workers=2,
        link_workers=1,
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    yield
    reset_container()


class TestServiceContainer:
    def test_lazy_loading(self) -> None:
        c = ServiceContainer()
        assert len(c._instances) == 0
        _ = c.registry
        assert "registry" in c._instances

    def test_shared_instances(self) -> None:
        c = ServiceContainer()
        assert c.registry is c.registry
        assert c.downloader is c.downloader
        assert c.entry_loader is c.entry_loader

    def test_components_follow_config(self) -> None:
        c = ServiceContainer()
        assert isinstance(c.registry, RegistryClient)
        assert c.registry.registry_url == "http://registry.local:4873"
        assert c.registry.timeout == 5
        assert isinstance(c.downloader, TarballDownloader)
        assert c.downloader.timeout == 5
        assert isinstance(c.entry_loader, EntryLoader)
        assert c.entry_loader.manifest_name == "deps.json"

    def test_installer_is_fresh(self, tmp_path: Path) -> None:
        c = ServiceContainer()
        reporter = LogProgressReporter()
        first = c.installer(tmp_path, reporter=reporter)
        second = c.installer(tmp_path)
        assert isinstance(first, Installer)
        assert first is not second
        assert first.registry is c.registry
        assert first.reporter is reporter
        assert first.modules_dir == "deps"
        assert (first.resolve_workers, first.fetch_workers, first.link_workers) == (3, 2, 1)

    def test_explicit_config(self) -> None:
        c = ServiceContainer(config=cfgmod.Config(registry_url="https://mirror.test"))
        assert c.registry.registry_url == "https://mirror.test"

    def test_bad_registry_url(self) -> None:
        c = ServiceContainer(config=cfgmod.Config(registry_url="file:///srv"))
        with pytest.raises(ValidationError):
            _ = c.registry


class TestGlobalContainer:
    def test_singleton(self) -> None:
        assert get_container() is get_container()

    def test_reset(self) -> None:
        first = get_container()
        reset_container()
        assert get_container() is not first
