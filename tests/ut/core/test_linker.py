"""符号链接测试"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from depflow.core.exceptions import LinkError
from depflow.core.install.broadcast import Broadcast
from depflow.core.install.linker import Linker, LinkStage, force_symlink
from depflow.core.install.models import FrontierItem, ResolvedDependency


class TestForceSymlink:
    def test_creates_parents(self, tmp_path: Path) -> None:
        (tmp_path / "target").mkdir()
        link = tmp_path / "a" / "b" / "link"
        force_symlink("../../target", link)
        assert link.is_symlink()
        assert os.readlink(link) == "../../target"
        assert link.resolve() == (tmp_path / "target").resolve()

    def test_replaces_existing(self, tmp_path: Path) -> None:
        link = tmp_path / "link"
        force_symlink("old", link)
        force_symlink("new", link)
        assert os.readlink(link) == "new"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["link"]

    def test_real_directory_is_error(self, tmp_path: Path) -> None:
        link = tmp_path / "link"
        (link / "content").mkdir(parents=True)
        with pytest.raises(LinkError) as exc:
            force_symlink("elsewhere", link)
        assert exc.value.kind in (LinkError.IO, LinkError.PERMISSION)
        assert [p.name for p in tmp_path.iterdir()] == ["link"]


def _dep(project: Path, meta_factory, parent: Path, name: str, digest: str) -> ResolvedDependency:
    return ResolvedDependency(
        metadata=meta_factory(name, "1.0.0", digest),
        install_target=project / "node_modules" / digest,
        link_path=parent / "node_modules" / name,
        parent_target=parent,
    )


class TestLinker:
    def test_relative_target_from_root(self, project: Path, meta_factory) -> None:
        dep = _dep(project, meta_factory, project, "a", "aaa111")
        assert Linker.relative_target(dep) == "aaa111"

    def test_relative_target_nested(self, project: Path, meta_factory) -> None:
        parent = project / "node_modules" / "xxx000"
        dep = _dep(project, meta_factory, parent, "z", "zzz999")
        assert Linker.relative_target(dep) == os.path.join("..", "..", "zzz999")

    def test_scoped_name(self, project: Path, meta_factory) -> None:
        dep = _dep(project, meta_factory, project, "@types/node", "ttt000")
        assert Linker.relative_target(dep) == os.path.join("..", "ttt000")

    def test_link_resolves_to_install_target(self, project: Path, meta_factory) -> None:
        parent = project / "node_modules" / "xxx000"
        dep = _dep(project, meta_factory, parent, "z", "zzz999")
        dep.install_target.mkdir(parents=True)
        Linker().link(dep)
        assert dep.link_path.is_symlink()
        assert dep.link_path.resolve() == dep.install_target


class TestLinkStage:
    def test_links_each_consumer(self, project: Path, meta_factory) -> None:
        x = project / "node_modules" / "xxx111"
        y = project / "node_modules" / "yyy222"
        deps = [
            _dep(project, meta_factory, x, "z", "zzz333"),
            _dep(project, meta_factory, y, "z", "zzz333"),
            _dep(project, meta_factory, x, "z", "zzz333"),
        ]
        stage = LinkStage(Linker(), max_workers=2)
        broadcast = Broadcast([FrontierItem.from_resolved(d) for d in deps])
        broadcast.subscribe(stage)
        broadcast.run()
        assert len(stage.done) == 2
        assert (x / "node_modules" / "z").is_symlink()
        assert (y / "node_modules" / "z").is_symlink()

    def test_failure_recorded(self, project: Path, meta_factory) -> None:
        dep = _dep(project, meta_factory, project, "a", "aaa111")
        (dep.link_path / "real").mkdir(parents=True)
        stage = LinkStage(Linker())
        broadcast = Broadcast([FrontierItem.from_resolved(dep)])
        broadcast.subscribe(stage)
        broadcast.run()
        assert stage.done == []
        assert [(f.stage, f.package) for f in stage.failures] == [("link", "a@1.0.0")]

    def test_waits_for_parent(self, project: Path, meta_factory) -> None:
        parent = project / "node_modules" / "xxx111"
        dep = _dep(project, meta_factory, parent, "z", "zzz333")
        asked: list[Path] = []

        def parent_ready(target: Path) -> bool:
            asked.append(target)
            return False

        stage = LinkStage(Linker(), parent_ready=parent_ready)
        broadcast = Broadcast([FrontierItem.from_resolved(dep)])
        broadcast.subscribe(stage)
        broadcast.run()
        assert asked == [parent]
        assert not parent.exists()
        assert [(f.stage, f.kind) for f in stage.failures] == [("link", "io")]
