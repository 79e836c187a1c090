"""依赖图展开器

从种子节点出发，自我喂养地展开整个依赖图，产出惰性的 FrontierItem 流:

  1. 节点的 install_target 已在 visited 集合中 → 该分支到此为止（环 / 菱形汇合）
  2. 否则（加锁）写入 visited，读取其依赖字段:
       项目根节点: dependencies + devDependencies
       其他节点:   仅 dependencies（传递依赖的 devDependencies 从不安装）
  3. 每条 (包名, 范围) 提交到有界线程池并发解析；
     解析成功得到的新节点先输出到流中，再回到第 1 步
  4. 未完成工作计数归零时流结束

每个解析结果都会输出（同一个包被多个父节点依赖时输出多次，link_path 不同），
但每个 install_target 只展开一次。种子节点最先原样输出，带 is_seed 标记，
下游按标记而不是按位置跳过。

解析失败（RegistryError）只终止该条依赖边，记录到 failures；
其他异常视为程序错误，取消剩余工作并在流的消费端重新抛出。
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Iterator

from depflow.core.exceptions import RegistryError
from depflow.core.install.models import FrontierItem, InstallFailure
from depflow.core.install.resolver import DependencyResolver

logger = logging.getLogger(__name__)

_DONE = object()


class FrontierExpander:
    """依赖图展开器，一个实例对应一次安装调用，只能运行一次"""

    def __init__(
        self,
        resolver: DependencyResolver,
        project_root: Path,
        *,
        max_workers: int = 16,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.resolver = resolver
        self.project_root = Path(project_root)
        self.max_workers = max(1, max_workers)
        self._cancel = cancel_event or threading.Event()

        self._lock = threading.Lock()
        # 保持插入顺序，兼作展开顺序记录
        self._visited: dict[Path, None] = {}
        self._pending = 0
        self._out: queue.Queue[object] = queue.Queue()
        self._pool: ThreadPoolExecutor | None = None
        self._error: BaseException | None = None
        self._started = False
        self.failures: list[InstallFailure] = []

    @property
    def expanded(self) -> list[Path]:
        """已获得展开权的 install_target，按展开顺序排列，每个至多出现一次

        供安装结束后检查展开结果（日志统计、测试断言）；运行中读取得到的是快照。
        """
        with self._lock:
            return list(self._visited)

    def expand(self, seeds: Iterable[FrontierItem]) -> Iterator[FrontierItem]:
        """展开依赖图，返回惰性节点流"""
        if self._started:
            raise RuntimeError("FrontierExpander 只能运行一次")
        self._started = True

        self._pool = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="resolve",
        )
        finished = False
        # 种子令牌: 全部种子入队前计数不会归零
        self._acquire()
        try:
            for seed in seeds:
                self._out.put(seed)
                self._visit(seed)
            self._release()

            while True:
                item = self._out.get()
                if item is _DONE:
                    break
                yield item  # type: ignore[misc]
            finished = True
        finally:
            if not finished:
                self._cancel.set()
            self._pool.shutdown(wait=True, cancel_futures=True)

        if self._error is not None:
            raise self._error
        logger.info(
            "依赖图展开完成: %d 个节点, %d 条解析失败",
            len(self._visited), len(self.failures),
        )

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------

    def _acquire(self) -> None:
        with self._lock:
            self._pending += 1

    def _release(self) -> None:
        with self._lock:
            self._pending -= 1
            done = self._pending == 0
        if done:
            self._out.put(_DONE)

    def _claim(self, target: Path) -> bool:
        """原子地检查并写入 visited，返回是否由本次调用获得展开权"""
        with self._lock:
            if target in self._visited:
                return False
            self._visited[target] = None
            return True

    def _visit(self, item: FrontierItem) -> None:
        if not self._claim(item.install_target):
            logger.debug("已展开，跳过: %s", item.label)
            return
        include_dev = item.install_target == self.project_root
        for name, rng in item.declared(include_dev).items():
            self._submit(item, name, rng)

    def _submit(self, parent: FrontierItem, name: str, rng: str) -> None:
        if self._cancel.is_set():
            return
        self._acquire()
        try:
            self._pool.submit(self._resolve_edge, parent, name, rng)  # type: ignore[union-attr]
        except RuntimeError:
            # 线程池已关闭: 仅在取消过程中出现
            self._release()
            if not self._cancel.is_set():
                raise

    def _resolve_edge(self, parent: FrontierItem, name: str, rng: str) -> None:
        try:
            if self._cancel.is_set():
                return
            dep = self.resolver.resolve(parent.install_target, name, rng)
            child = FrontierItem.from_resolved(dep)
            self._out.put(child)
            self._visit(child)
        except RegistryError as e:
            logger.warning("解析失败: %s@%s <- %s [%s] %s", name, rng, parent.label, e.kind, e)
            failure = InstallFailure(
                stage="resolve",
                package=f"{name}@{rng}",
                message=str(e),
                kind=e.kind,
                root_edge=parent.install_target == self.project_root,
            )
            with self._lock:
                self.failures.append(failure)
        except Exception as e:
            logger.exception("解析 %s@%s 时出现未预期错误，取消安装", name, rng)
            with self._lock:
                if self._error is None:
                    self._error = e
            self._cancel.set()
        finally:
            self._release()
