"""符号链接

职责:
- force_symlink: 原子地创建或替换符号链接（自动创建父目录）
- Linker:        计算 link_path → install_target 的相对路径并建立链接
- LinkStage:     广播订阅者，按 link_path 去重后并发链接

重复执行安装是幂等的：已存在的链接会被原子替换而不是报错。
"""

from __future__ import annotations

import errno
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Callable

from depflow.core.exceptions import LinkError
from depflow.core.install.broadcast import DedupStage
from depflow.core.install.models import ResolvedDependency
from depflow.core.progress import NullProgressReporter
from depflow.core.protocols import ProgressReporter

logger = logging.getLogger(__name__)


def force_symlink(relative_target: str, link_path: Path) -> None:
    """在 link_path 创建指向 relative_target 的符号链接，已存在则替换

    先在同目录以临时名创建链接，再 os.replace 覆盖，保证任意时刻
    link_path 要么是旧链接要么是新链接。

    Raises:
        LinkError: 权限不足 / 其他 IO 错误（包括 link_path 是真实目录）
    """
    tmp = link_path.with_name(f".{link_path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        link_path.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(relative_target, tmp)
        try:
            os.replace(tmp, link_path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
    except PermissionError as e:
        raise LinkError(f"无权限创建链接: {link_path} - {e}", LinkError.PERMISSION) from e
    except OSError as e:
        kind = LinkError.PERMISSION if e.errno in (errno.EACCES, errno.EPERM) else LinkError.IO
        raise LinkError(f"创建链接失败: {link_path} - {e}", kind) from e


class Linker:
    """把已解析的包链接到消费者的 node_modules 下"""

    def __init__(self, *, reporter: ProgressReporter | None = None) -> None:
        self.reporter = reporter or NullProgressReporter()

    @staticmethod
    def relative_target(dep: ResolvedDependency) -> str:
        """链接内容: 从 link_path 所在目录到 install_target 的相对路径"""
        return os.path.relpath(dep.install_target, dep.link_path.parent)

    def link(self, dep: ResolvedDependency) -> None:
        """Raises: LinkError"""
        rel = self.relative_target(dep)
        self.reporter.start(f"linking {dep.name}")
        try:
            force_symlink(rel, dep.link_path)
        finally:
            self.reporter.complete(f"linked {dep.name} -> {dep.metadata.short_digest}")
        logger.debug("已链接: %s -> %s", dep.link_path, rel)


class LinkStage(DedupStage[Path]):
    """按 link_path 去重的链接阶段

    链接位于发起方的 install_target 之下，须在发起方内容落盘后创建。
    parent_ready 阻塞到发起方就绪，返回其内容目录是否可用。
    """

    stage = "link"
    error_type = LinkError

    def __init__(
        self,
        linker: Linker,
        max_workers: int = 8,
        cancel_event: threading.Event | None = None,
        parent_ready: Callable[[Path], bool] | None = None,
    ) -> None:
        super().__init__(max_workers=max_workers, cancel_event=cancel_event)
        self.linker = linker
        self.parent_ready = parent_ready

    def key(self, dep: ResolvedDependency) -> Path:
        return dep.link_path

    def apply(self, dep: ResolvedDependency) -> None:
        if self.parent_ready is not None and not self.parent_ready(dep.parent_target):
            raise LinkError(
                f"发起方未安装，跳过链接: {dep.link_path}", LinkError.IO, dep.name,
            )
        self.linker.link(dep)
