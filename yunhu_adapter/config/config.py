# -*- coding: utf-8 -*-
from typing import List, Optional

from pydantic import BaseModel, Field

from ..constant import (
    DEFAULT_API_ENDPOINT,
    DEFAULT_AUDIO_BACKGROUND,
    DEFAULT_RESOURCE_ENDPOINT,
    DEFAULT_WEB_ENDPOINT,
)


class RetryPolicy(BaseModel):
    """Bounded retry with linear backoff: attempt N waits N seconds."""

    max_attempts: int = Field(default=3, ge=1)
    backoff_unit: float = Field(default=1.0, ge=0)

    def backoff(self, attempt: int) -> float:
        return attempt * self.backoff_unit


class BaseChannelConfig(BaseModel):
    """Base for channel config (read from config.json, no env)."""

    enabled: bool = False
    bot_prefix: str = ""


class BotConfig(BaseModel):
    """One Yunhu bot account. ``path`` is the webhook path it listens on."""

    enabled: bool = True
    bot_name: str = ""
    bot_id: str = ""
    token: str = ""
    path: str = "/yunhu"


class YunhuConfig(BaseChannelConfig):
    """Yunhu channel: bot accounts, endpoints and media pipeline tuning."""

    bots: List[BotConfig] = Field(default_factory=list)

    endpoint: str = DEFAULT_API_ENDPOINT
    endpoint_web: str = DEFAULT_WEB_ENDPOINT
    resource_endpoint: str = DEFAULT_RESOURCE_ENDPOINT

    # Download / upload timeout in seconds, applied per request.
    upload_timeout: int = Field(default=120, ge=30, le=3600)
    max_retries: int = Field(default=3, ge=1, le=10)
    # Only the RGB channels are used.
    audio_background_color: str = DEFAULT_AUDIO_BACKGROUND

    enable_stream: bool = False
    stream_duration: int = Field(default=2, ge=1, le=10)

    # Verbose per-request logging at INFO instead of DEBUG.
    logger_info: bool = False

    ffmpeg_path: str = "ffmpeg"
    # None -> system temp dir
    temp_dir: Optional[str] = None

    @property
    def retry_policy(self) -> "RetryPolicy":
        return RetryPolicy(max_attempts=self.max_retries)

    def get_bot(self, name_or_id: Optional[str] = None) -> BotConfig:
        """Return the named bot, or the first enabled one."""
        for bot in self.bots:
            if name_or_id is None and bot.enabled:
                return bot
            if name_or_id in (bot.bot_name, bot.bot_id):
                return bot
        raise KeyError(name_or_id or "no enabled bot configured")


class Config(BaseModel):
    """Root config (config.json)."""

    yunhu: YunhuConfig = Field(default_factory=YunhuConfig)
