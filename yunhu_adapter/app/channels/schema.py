# -*- coding: utf-8 -*-
"""
Channel message schema: outgoing content parts and upload results shared by
the Yunhu channel and its media pipeline.
"""
from __future__ import annotations

from typing import Any, Dict, Literal

from pydantic import BaseModel

ChannelType = Literal["yunhu"]

# Asset kinds accepted by the upload pipeline. Audio is remuxed into video
# before upload.
AssetKind = Literal["image", "video", "audio", "file"]

ASSET_KINDS = ("image", "video", "audio", "file")

# One content part to send: {"type": "text", "text": ...} or a media part
# such as {"type": "image", "url": ..., "filename": ...}.
OutgoingContentPart = Dict[str, Any]


class UploadResult(BaseModel):
    """A platform-hosted asset.

    ``key`` is the platform-issued identifier; ``url`` is the public
    resource URL (content-addressed for images, key-addressed otherwise).
    """

    url: str
    key: str
