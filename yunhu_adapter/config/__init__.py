# -*- coding: utf-8 -*-
from .config import BotConfig, Config, RetryPolicy, YunhuConfig
from .utils import get_config_path, load_config, save_config

__all__ = [
    "BotConfig",
    "Config",
    "RetryPolicy",
    "YunhuConfig",
    "get_config_path",
    "load_config",
    "save_config",
]
