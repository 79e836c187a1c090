"""depflow 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from typing import Any

import click

from depflow import __version__
from depflow.core.config import DEFAULT_CONFIG_FILE, init_config
from depflow.core.exceptions import DepflowError
from depflow.services.container import get_container, reset_container
from depflow.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE,
    help="配置文件路径（不存在时使用默认配置）",
)
def main(config_path: str) -> None:
    """depflow - 内容寻址的依赖安装工具"""
    setup_logging(
        level=os.getenv("DEPFLOW_LOG_LEVEL", "INFO"),
        json_output=os.getenv("DEPFLOW_LOG_JSON", "") == "1",
    )
    try:
        init_config(config_path)
    except DepflowError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    reset_container()


# 注册各领域子命令
from depflow.cli.cmd_install import register as _reg_install  # noqa: E402

_reg_install(main)
