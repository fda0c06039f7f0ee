# -*- coding: utf-8 -*-
import os
from pathlib import Path

WORKING_DIR = (
    Path(os.environ.get("YUNHU_WORKING_DIR", "~/.yunhu"))
    .expanduser()
    .resolve()
)

CONFIG_FILE = os.environ.get("YUNHU_CONFIG_FILE", "config.json")

# Env key for CLI log level.
LOG_LEVEL_ENV = "YUNHU_LOG_LEVEL"

# ---------------------------------------------------------------------------
# Platform endpoints (overridable per bot config, normally left alone)
# ---------------------------------------------------------------------------
DEFAULT_API_ENDPOINT = "https://chat-go.jwzhd.com/open-apis/v1"
DEFAULT_WEB_ENDPOINT = "https://chat-web-go.jwzhd.com/v1"
DEFAULT_RESOURCE_ENDPOINT = "https://chat-img.jwznb.com/"

# The resource CDN rejects default HTTP clients.
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
)
DOWNLOAD_REFERER = "www.yhchat.com"
AVATAR_REFERER = "https://yhfx.jwznb.com/"

# Response envelope: {"code": 1, "data": ...} on success.
SUCCESS_CODE = 1

# ---------------------------------------------------------------------------
# Upload ceilings (bytes). Audio is uploaded as video.
# ---------------------------------------------------------------------------
MB = 1024 * 1024
IMAGE_MAX_BYTES = 10 * MB
VIDEO_MAX_BYTES = 20 * MB
FILE_MAX_BYTES = 100 * MB

# Resolution of the still picture used when muxing audio into video.
AUDIO_VIDEO_SIZE = "640x480"
AUDIO_BITRATE = "128k"
DEFAULT_AUDIO_BACKGROUND = "rgba(0, 0, 0, 1)"
