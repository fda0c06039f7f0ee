# -*- coding: utf-8 -*-
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Tuple

import click

from ..config import BotConfig, YunhuConfig, load_config


def print_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


def resolve_bot(
    config_path: Optional[Path],
    bot_name: Optional[str],
) -> Tuple[YunhuConfig, BotConfig]:
    """Load config.json and pick the bot (by name/id, or first enabled)."""
    cfg = load_config(config_path).yunhu
    try:
        bot = cfg.get_bot(bot_name)
    except KeyError as e:
        raise click.ClickException(f"bot not found: {e.args[0]}") from e
    if not bot.token:
        raise click.ClickException(f"bot has no token: {bot.bot_name}")
    return cfg, bot
