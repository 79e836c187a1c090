"""共享广播（Observer 模式）

展开器的输出流只能被计算一次：重复消费会重复发起注册表请求、重复汇报进度。
Broadcast 是唯一的扇出点: 先 subscribe() 注册全部订阅者，再 run()
拉取源流一次，把每个节点按产出顺序依次交给每个订阅者。

订阅者分两类:
  - 去重阶段（DedupStage 子类: 下载 / 链接），on_item 只负责调度，
    真正的副作用在各自的线程池中执行，on_complete 等待全部完成
  - 观察点（进度、统计），on_item 里直接处理

用法:
    broadcast = Broadcast(expander.expand(seeds))
    broadcast.subscribe(fetch_stage)
    broadcast.subscribe(link_stage)
    broadcast.run()
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Generic, Hashable, Iterable, TypeVar

from depflow.core.exceptions import DepflowError
from depflow.core.install.models import FrontierItem, InstallFailure, ResolvedDependency

logger = logging.getLogger(__name__)


class StreamSubscriber(ABC):
    """广播订阅者基类"""

    @abstractmethod
    def on_item(self, item: FrontierItem) -> None:
        """接收一个节点（在广播线程中串行调用）"""

    def on_complete(self) -> None:
        """源流正常结束"""

    def on_cancel(self) -> None:
        """源流异常终止，放弃尚未开始的工作"""


class Broadcast:
    """把一个源流多播给多个订阅者，源流只被消费一次"""

    def __init__(self, source: Iterable[FrontierItem]) -> None:
        self._source = source
        self._subscribers: list[StreamSubscriber] = []
        self._consumed = False

    def subscribe(self, subscriber: StreamSubscriber) -> None:
        if self._consumed:
            raise RuntimeError("广播已开始，无法再订阅")
        self._subscribers.append(subscriber)

    def run(self) -> int:
        """消费源流并分发，返回分发的节点数"""
        if self._consumed:
            raise RuntimeError("源流已被消费，不能重复运行")
        self._consumed = True

        count = 0
        try:
            for item in self._source:
                count += 1
                for sub in self._subscribers:
                    sub.on_item(item)
        except BaseException:
            close = getattr(self._source, "close", None)
            if close is not None:
                close()
            for sub in self._subscribers:
                sub.on_cancel()
            raise

        for i, sub in enumerate(self._subscribers):
            try:
                sub.on_complete()
            except BaseException:
                # 尚未完成的订阅者（含出错者）一律取消，释放各自的线程池
                for rest in self._subscribers[i:]:
                    rest.on_cancel()
                raise
        logger.debug("广播结束: %d 个节点, %d 个订阅者", count, len(self._subscribers))
        return count


K = TypeVar("K", bound=Hashable)


class DedupStage(StreamSubscriber, Generic[K]):
    """按键去重后在线程池中执行副作用的阶段

    子类实现 key() 与 apply()，并声明 stage 名称与可隔离的异常类型。
    同一键只会有一个赢家进入 apply()，其余直接丢弃；
    单个 apply() 失败只记录到 failures，不影响其他工作。
    """

    stage: str = ""
    error_type: type[DepflowError] = DepflowError

    def __init__(
        self, max_workers: int = 8, cancel_event: threading.Event | None = None,
    ) -> None:
        self._cancel = cancel_event or threading.Event()
        self._pool = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix=self.stage or "stage",
        )
        self._lock = threading.Lock()
        self._seen: set[K] = set()
        self._futures: dict[K, Future[bool]] = {}
        self.done: list[ResolvedDependency] = []
        self.failures: list[InstallFailure] = []

    @abstractmethod
    def key(self, dep: ResolvedDependency) -> K:
        """去重键"""

    @abstractmethod
    def apply(self, dep: ResolvedDependency) -> None:
        """执行副作用，失败抛出 error_type"""

    def claim(self, dep: ResolvedDependency) -> bool:
        """原子地检查并登记去重键"""
        k = self.key(dep)
        with self._lock:
            if k in self._seen:
                return False
            self._seen.add(k)
            return True

    def on_item(self, item: FrontierItem) -> None:
        if item.is_seed or item.dependency is None or self._cancel.is_set():
            return
        dep = item.dependency
        if not self.claim(dep):
            return
        fut = self._pool.submit(self._run_one, dep)
        with self._lock:
            self._futures[self.key(dep)] = fut

    def _run_one(self, dep: ResolvedDependency) -> bool:
        if self._cancel.is_set():
            return False
        try:
            self.apply(dep)
        except self.error_type as e:
            logger.error("%s 失败: %s - %s", self.stage, dep.metadata.spec, e)
            failure = InstallFailure(
                stage=self.stage,
                package=dep.metadata.spec,
                message=str(e),
                kind=getattr(e, "kind", ""),
            )
            with self._lock:
                self.failures.append(failure)
            return False
        with self._lock:
            self.done.append(dep)
        return True

    def on_complete(self) -> None:
        """等待全部已调度工作完成；程序错误在此重新抛出"""
        wait(self._futures.values())
        self._pool.shutdown(wait=True)
        for f in self._futures.values():
            exc = f.exception()
            if exc is not None:
                raise exc

    def wait_for(self, key: K) -> None:
        """阻塞到 key 对应的已调度工作结束（未调度则立即返回）"""
        with self._lock:
            fut = self._futures.get(key)
        if fut is not None:
            wait([fut])

    def on_cancel(self) -> None:
        self._pool.shutdown(wait=True, cancel_futures=True)
