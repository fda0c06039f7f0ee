# -*- coding: utf-8 -*-
"""CLI commands: upload media and send messages through a Yunhu bot."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import click

from ..app.channels.schema import ASSET_KINDS
from ..app.channels.yunhu import (
    BotHttp,
    Internal,
    YunhuChannel,
    YunhuError,
)
from .utils import print_json, resolve_bot

_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="config.json 路径（默认 ~/.yunhu/config.json）",
)
_bot_option = click.option(
    "--bot",
    "bot_name",
    default=None,
    help="机器人名称或 ID（默认第一个启用的机器人）",
)


async def _upload(cfg, bot, url: str, kind: str, want_key: bool):
    async with BotHttp.from_config(cfg) as http:
        internal = Internal(bot.token, http, cfg)
        return await internal.upload(url, kind, want_key)


@click.command("upload")
@click.argument("url")
@click.option(
    "--kind",
    type=click.Choice(ASSET_KINDS),
    default="image",
    show_default=True,
    help="资源类型；audio 会转为视频上传",
)
@click.option("--key", "want_key", is_flag=True, help="同时输出资源 key")
@_bot_option
@_config_option
def upload_cmd(
    url: str,
    kind: str,
    want_key: bool,
    bot_name: Optional[str],
    config_path: Optional[Path],
) -> None:
    """上传 URL 指向的资源到云湖，输出资源地址。

    \b
    示例：
      yunhu-adapter upload https://example.com/a.png
      yunhu-adapter upload https://example.com/a.mp3 --kind audio --key
    """
    cfg, bot = resolve_bot(config_path, bot_name)
    try:
        result = asyncio.run(_upload(cfg, bot, url, kind, want_key))
    except YunhuError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}") from e
    if want_key:
        print_json(result.model_dump())
    else:
        click.echo(result)


async def _send(cfg, bot, handle: str, text: str, markdown: bool):
    channel = YunhuChannel(cfg, bot)
    try:
        return await channel.send(handle, text, {"markdown": markdown})
    finally:
        await channel.stop()


@click.command("send")
@click.argument("handle")
@click.argument("text")
@click.option("--markdown", is_flag=True, help="以 Markdown 发送")
@_bot_option
@_config_option
def send_cmd(
    handle: str,
    text: str,
    markdown: bool,
    bot_name: Optional[str],
    config_path: Optional[Path],
) -> None:
    """发送一条文本消息。

    \b
    HANDLE  private:<用户ID> 或 group:<群ID>

    \b
    示例：
      yunhu-adapter send private:123456 "hello"
      yunhu-adapter send group:987654 "**hi**" --markdown
    """
    cfg, bot = resolve_bot(config_path, bot_name)
    try:
        res = asyncio.run(_send(cfg, bot, handle, text, markdown))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="HANDLE") from e
    except YunhuError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}") from e
    print_json(res)
