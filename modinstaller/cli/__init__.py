"""modinstaller 命令行接口

子命令按领域拆分到子模块，每个模块注册自己的命令到 main group。
"""

import os

import click

from modinstaller import __version__
from modinstaller.utils.logger import setup_logging


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """modinstaller - 安装 git 托管的 mod 依赖"""
    setup_logging(
        level=os.getenv("MODINSTALLER_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("MODINSTALLER_LOG_JSON", "") == "1",
    )


# 注册子命令
from modinstaller.cli.cmd_mod import register as _reg_mod  # noqa: E402

_reg_mod(main)
