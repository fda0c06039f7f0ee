# -*- coding: utf-8 -*-
import json
import logging
from pathlib import Path
from typing import Optional

from ..constant import CONFIG_FILE, WORKING_DIR
from .config import Config

logger = logging.getLogger(__name__)


def get_config_path() -> Path:
    return WORKING_DIR / CONFIG_FILE


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load config.json; a missing file yields defaults."""
    path = Path(config_path) if config_path else get_config_path()
    if not path.is_file():
        logger.debug("config file not found, using defaults: %s", path)
        return Config()
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return Config.model_validate(data)


def save_config(config: Config, config_path: Optional[Path] = None) -> None:
    path = Path(config_path) if config_path else get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(
            config.model_dump(mode="json"),
            f,
            ensure_ascii=False,
            indent=2,
        )
