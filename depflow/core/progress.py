"""安装进度汇报

依赖图深度事先未知，总量随解析不断增长：每次 start() 增加总量，
每次 complete() 推进完成量，标签显示最近一次事件。

实现:
  - RichProgressReporter: 终端 spinner + M/N 计数（rich.progress）
  - LogProgressReporter:  写 DEBUG 日志（CI / 非交互终端）
  - NullProgressReporter: 什么都不做（测试）
"""

from __future__ import annotations

import logging
import threading
from types import TracebackType

from rich.console import Console
from rich.progress import (
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

logger = logging.getLogger(__name__)


class NullProgressReporter:
    def start(self, label: str) -> None:
        pass

    def complete(self, label: str) -> None:
        pass


class LogProgressReporter:
    """把进度事件写入日志，并统计开始 / 完成数量"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.started = 0
        self.completed = 0

    def start(self, label: str) -> None:
        with self._lock:
            self.started += 1
        logger.debug("开始: %s", label)

    def complete(self, label: str) -> None:
        with self._lock:
            self.completed += 1
        logger.debug("完成: %s", label)


class RichProgressReporter:
    """rich 终端进度条，需作为上下文管理器使用"""

    def __init__(self, console: Console | None = None) -> None:
        self._lock = threading.Lock()
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console or Console(stderr=True),
            transient=True,
        )
        self._task = self._progress.add_task("准备安装", total=0)
        self.started = 0
        self.completed = 0

    def __enter__(self) -> RichProgressReporter:
        self._progress.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._progress.stop()

    def start(self, label: str) -> None:
        with self._lock:
            self.started += 1
            self._progress.update(self._task, total=self.started, description=label)

    def complete(self, label: str) -> None:
        with self._lock:
            self.completed += 1
            self._progress.update(self._task, completed=self.completed, description=label)
