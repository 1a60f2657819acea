"""lockmigrate 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os

import click

from lockmigrate import __version__
from lockmigrate.utils.logger import setup_logging


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """lockmigrate - 按当前注册表刷新 pnpm-lock.yaml 中的下载元数据"""
    setup_logging(
        level=os.getenv("LOCKMIGRATE_LOG_LEVEL", "INFO"),
        json_output=os.getenv("LOCKMIGRATE_LOG_JSON", "") == "1",
    )


# 注册各领域子命令
from lockmigrate.cli.cmd_migrate import register as _reg_migrate  # noqa: E402

_reg_migrate(main)
