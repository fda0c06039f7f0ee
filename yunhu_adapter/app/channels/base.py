# -*- coding: utf-8 -*-
"""
Base Channel: outbound side of a chat platform bridge. The bot framework
hands over content parts; the channel turns them into platform messages.
"""
from __future__ import annotations

import logging
from abc import ABC
from typing import Any, Callable, Dict, List, Optional

from .schema import ChannelType, OutgoingContentPart

# Called when a reply was sent (channel, to_handle, session_id)
OnReplySent = Optional[Callable[[str, str, str], None]]

logger = logging.getLogger(__name__)

MEDIA_TYPES = ("image", "video", "audio", "file")


class BaseChannel(ABC):
    channel: ChannelType

    def __init__(self, on_reply_sent: OnReplySent = None):
        self._on_reply_sent = on_reply_sent

    @classmethod
    def from_config(
        cls,
        config: Any,
        on_reply_sent: OnReplySent = None,
    ) -> "BaseChannel":
        raise NotImplementedError

    async def send_content_parts(
        self,
        to_handle: str,
        parts: List[OutgoingContentPart],
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Send a list of content parts.
        Text/refusal parts are merged into one text message (with the bot
        prefix), then each media part goes through send_media.
        """
        text_parts: List[str] = []
        media_parts: List[OutgoingContentPart] = []
        for p in parts:
            t = p.get("type")
            if t == "text" and p.get("text"):
                text_parts.append(p["text"])
            elif t == "refusal" and p.get("refusal"):
                text_parts.append(p["refusal"])
            elif t in MEDIA_TYPES:
                media_parts.append(p)
        body = "\n".join(text_parts) if text_parts else ""
        prefix = (meta or {}).get("bot_prefix", "") or ""
        if prefix and body:
            body = prefix + body
        if body.strip():
            logger.debug(
                f"channel send_content_parts: to_handle={to_handle} "
                f"body_len={len(body)} media_count={len(media_parts)}",
            )
            await self.send(to_handle, body.strip(), meta)
        for m in media_parts:
            await self.send_media(to_handle, m, meta)
        if self._on_reply_sent:
            self._on_reply_sent(
                self.channel,
                to_handle,
                (meta or {}).get("session_id", ""),
            )

    async def send_media(
        self,
        to_handle: str,
        part: OutgoingContentPart,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a single media part (image, video, audio, file).
        Default: no-op. Subclasses override to upload and send.
        """

    async def start(self) -> None:
        raise NotImplementedError

    async def stop(self) -> None:
        raise NotImplementedError

    async def send(
        self,
        to_handle: str,
        text: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Subclass implements: send one text to to_handle."""
        raise NotImplementedError
