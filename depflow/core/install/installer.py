"""安装编排器

把各组件串成一条流水线:

  种子 → FrontierExpander（驱动 DependencyResolver）→ Broadcast → {FetchStage, LinkStage}

visited / fetched / linked 三个去重集合分别由展开器、下载阶段、链接阶段持有，
生命周期等于一次 install() 调用，不存在任何模块级全局状态。

完成条件: 展开器耗尽依赖图，且全部已调度的下载与链接工作结束。
单条依赖边的失败被收集到 InstallReport.failures，不中断其他工作；
已成功安装的包保留在磁盘上，不做全局回滚。

用法:
    installer = Installer(project_root, registry, downloader)
    seeds = EntryLoader().from_fs(project_root)
    report = installer.install(seeds)
    if not report.success:
        ...
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable

from depflow.core.install.broadcast import Broadcast, StreamSubscriber
from depflow.core.install.fetcher import FetchStage, PackageFetcher
from depflow.core.install.frontier import FrontierExpander
from depflow.core.install.linker import Linker, LinkStage
from depflow.core.install.models import (
    FrontierItem,
    InstallReport,
    ResolvedDependency,
)
from depflow.core.install.resolver import DependencyResolver
from depflow.core.progress import NullProgressReporter
from depflow.core.protocols import ContentDownloader, PackageRegistry, ProgressReporter

logger = logging.getLogger(__name__)


class _ResolvedCollector(StreamSubscriber):
    """观察点: 按产出顺序记录全部已解析依赖"""

    def __init__(self) -> None:
        self.items: list[ResolvedDependency] = []

    def on_item(self, item: FrontierItem) -> None:
        if item.dependency is not None:
            self.items.append(item.dependency)


class Installer:
    """一次安装流水线的编排器"""

    def __init__(
        self,
        project_root: Path,
        registry: PackageRegistry,
        downloader: ContentDownloader,
        *,
        modules_dir: str = "node_modules",
        resolve_workers: int = 16,
        fetch_workers: int = 8,
        link_workers: int = 8,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.registry = registry
        self.downloader = downloader
        self.modules_dir = modules_dir
        self.resolve_workers = resolve_workers
        self.fetch_workers = fetch_workers
        self.link_workers = link_workers
        self.reporter = reporter or NullProgressReporter()
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """取消进行中的安装: 不再发起新的解析 / 下载 / 链接"""
        if not self._cancel.is_set():
            logger.warning("安装已取消: %s", self.project_root)
        self._cancel.set()

    def install(self, seeds: Iterable[FrontierItem]) -> InstallReport:
        """执行安装，返回结果汇总

        程序错误（非 RegistryError / FetchError / LinkError）会取消流水线并向上抛出。
        """
        resolver = DependencyResolver(
            self.registry, self.project_root,
            modules_dir=self.modules_dir, reporter=self.reporter,
        )
        expander = FrontierExpander(
            resolver, self.project_root,
            max_workers=self.resolve_workers, cancel_event=self._cancel,
        )
        collector = _ResolvedCollector()
        fetch_stage = FetchStage(
            PackageFetcher(self.downloader, reporter=self.reporter),
            max_workers=self.fetch_workers, cancel_event=self._cancel,
        )
        link_stage = LinkStage(
            Linker(reporter=self.reporter),
            max_workers=self.link_workers, cancel_event=self._cancel,
            parent_ready=fetch_stage.ready,
        )

        broadcast = Broadcast(expander.expand(seeds))
        broadcast.subscribe(collector)
        broadcast.subscribe(fetch_stage)
        broadcast.subscribe(link_stage)

        logger.info("开始安装: %s", self.project_root)
        try:
            broadcast.run()
        except KeyboardInterrupt:
            self.cancel()
            raise

        report = InstallReport(
            resolved=collector.items,
            fetched=fetch_stage.done,
            linked=link_stage.done,
            failures=[*expander.failures, *fetch_stage.failures, *link_stage.failures],
            cancelled=self._cancel.is_set(),
        )
        for failure in report.failures:
            if failure.root_edge:
                logger.error("项目直接依赖解析失败: %s - %s", failure.package, failure.message)

        logger.info(
            "安装结束: 解析 %d, 下载 %d (新下载 %d), 链接 %d, 失败 %d",
            len(report.resolved), len(report.fetched), fetch_stage.downloaded,
            len(report.linked), len(report.failures),
        )
        return report
