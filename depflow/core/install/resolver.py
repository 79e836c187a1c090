"""依赖解析器

把父节点声明的一条 (包名, 版本范围) 解析为 ResolvedDependency:

  install_target = <项目根>/node_modules/<内容摘要>
      内容寻址，与发起方无关；多个父节点依赖同一具体版本时收敛到同一目录，
      展开器据此去重。
  link_path = <父节点 install_target>/node_modules/<包名>
      相对发起方，同一个包可以在多个消费者处各链接一次。
"""

from __future__ import annotations

import logging
from pathlib import Path

from depflow.core.exceptions import RegistryError
from depflow.core.install.models import ResolvedDependency
from depflow.core.progress import NullProgressReporter
from depflow.core.protocols import PackageRegistry, ProgressReporter
from depflow.utils.logger import log_resolved

logger = logging.getLogger(__name__)


class DependencyResolver:
    """单条依赖边解析器"""

    def __init__(
        self,
        registry: PackageRegistry,
        project_root: Path,
        *,
        modules_dir: str = "node_modules",
        reporter: ProgressReporter | None = None,
    ) -> None:
        self.registry = registry
        self.project_root = Path(project_root)
        self.modules_dir = modules_dir
        self.reporter = reporter or NullProgressReporter()

    def resolve(self, parent_target: Path, name: str, version_range: str) -> ResolvedDependency:
        """解析一条依赖边

        Raises:
            RegistryError: 注册表无法满足范围或不可达
        """
        self.reporter.start(f"resolving {name}@{version_range}")
        try:
            metadata = self.registry.resolve(name, version_range)
        except RegistryError:
            self.reporter.complete(f"failed {name}@{version_range}")
            raise

        parent_digest = None if parent_target == self.project_root else parent_target.name
        log_resolved(parent_digest, metadata.content_digest, name, metadata.version)

        dep = ResolvedDependency(
            metadata=metadata,
            install_target=self.project_root / self.modules_dir / metadata.content_digest,
            link_path=parent_target / self.modules_dir / name,
            parent_target=parent_target,
        )
        self.reporter.complete(f"resolved {metadata.spec} [{metadata.short_digest}]")
        return dep
