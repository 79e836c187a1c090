"""CLI: 安装与解析命令"""

from __future__ import annotations

import contextlib
import dataclasses
import sys
from pathlib import Path

import click

from depflow.cli import _svc
from depflow.core.exceptions import DepflowError
from depflow.core.install.models import InstallReport
from depflow.core.progress import LogProgressReporter, RichProgressReporter
from depflow.services.container import ServiceContainer


class FatalInstallError(click.ClickException):
    """入口清单 / 配置错误，安装未开始"""

    exit_code = 2


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(resolve_pkg)


def _container(registry: str | None, jobs: int | None) -> ServiceContainer:
    """命令行覆盖配置时新建容器，否则复用全局容器"""
    svc = _svc()
    overrides: dict[str, object] = {}
    if registry:
        overrides["registry_url"] = registry
    if jobs:
        overrides["resolve_workers"] = jobs
    if not overrides:
        return svc
    try:
        return ServiceContainer(config=dataclasses.replace(svc.config, **overrides))
    except DepflowError as e:
        raise FatalInstallError(f"[{e.code}] {e}") from e


def _print_report(report: InstallReport) -> None:
    s = report.summary()
    click.echo(
        f"解析 {s['resolved']} 个依赖，下载 {s['fetched']} 个包，"
        f"创建 {s['linked']} 个链接"
    )
    if report.cancelled:
        click.echo("安装已取消，部分包未完成。", err=True)
    if not report.failures:
        return
    click.echo(f"{len(report.failures)} 项失败:", err=True)
    for f in report.failures:
        kind = f"/{f.kind}" if f.kind else ""
        marker = " (项目直接依赖)" if f.root_edge else ""
        click.echo(f"  [{f.stage}{kind}] {f.package}{marker}: {f.message}", err=True)


@click.command()
@click.argument("packages", nargs=-1)
@click.option("--cwd", default=".", type=click.Path(file_okay=False), help="项目根目录")
@click.option("--registry", default=None, help="覆盖配置中的注册表地址")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="解析并发上限")
@click.option("--progress/--no-progress", default=True, help="是否显示终端进度条")
@click.pass_context
def install(
    ctx: click.Context, packages: tuple[str, ...], cwd: str,
    registry: str | None, jobs: int | None, progress: bool,
) -> None:
    """安装依赖；指定 PACKAGES（name@range）时只安装这些包"""
    svc = _container(registry, jobs)
    root = Path(cwd).resolve()

    use_rich = progress and sys.stderr.isatty()
    reporter = RichProgressReporter() if use_rich else LogProgressReporter()
    try:
        loader = svc.entry_loader
        seeds = loader.from_argv(root, packages) if packages else loader.from_fs(root)
        installer = svc.installer(root, reporter=reporter)
    except DepflowError as e:
        raise FatalInstallError(f"[{e.code}] {e}") from e

    with reporter if use_rich else contextlib.nullcontext():
        report = installer.install(seeds)

    _print_report(report)
    if not report.success:
        ctx.exit(1)


@click.command(name="resolve")
@click.argument("name")
@click.argument("version_range", default="latest")
@click.option("--registry", default=None, help="覆盖配置中的注册表地址")
def resolve_pkg(name: str, version_range: str, registry: str | None) -> None:
    """向注册表解析单个包（不下载）"""
    svc = _container(registry, None)
    try:
        meta = svc.registry.resolve(name, version_range)
    except DepflowError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e

    click.echo(meta.spec)
    click.echo(f"  digest:  {meta.content_digest}")
    click.echo(f"  tarball: {meta.download_url}")
    if not meta.dependencies:
        click.echo("  (无依赖)")
        return
    click.echo("  dependencies:")
    for dep, rng in sorted(meta.dependencies.items()):
        click.echo(f"    {dep:30s} {rng}")
