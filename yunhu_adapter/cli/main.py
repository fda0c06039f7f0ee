# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
import os

import click

from ..constant import LOG_LEVEL_ENV
from .upload_cmd import send_cmd, upload_cmd

LOG_LEVELS = ("debug", "info", "warning", "error")


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=lambda: os.environ.get(LOG_LEVEL_ENV, "warning").lower(),
    help=f"日志级别（也可通过 {LOG_LEVEL_ENV} 设置）",
)
def cli(log_level: str) -> None:
    """云湖机器人适配器命令行。"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(upload_cmd)
cli.add_command(send_cmd)


if __name__ == "__main__":
    cli()  # pylint: disable=no-value-for-parameter
