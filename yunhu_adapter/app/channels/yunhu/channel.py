# -*- coding: utf-8 -*-
# pylint: disable=too-many-return-statements
"""Yunhu Channel.

Outbound only: text goes to /bot/send (or /bot/send-stream when streaming
is enabled); media parts are uploaded through the media pipeline first and
sent as image/video/file messages referencing the platform key. Audio is
delivered as video.

to_handle format: ``private:<userId>`` or ``group:<chatId>``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ....config.config import BotConfig, YunhuConfig
from ....constant import MB, SUCCESS_CODE
from ..base import BaseChannel, OnReplySent
from ..schema import OutgoingContentPart
from .errors import SizeLimitError, YunhuError
from .http import BotHttp
from .internal import Envelope, Internal, parse_channel_id
from .transcode import FFmpegTranscoder

logger = logging.getLogger(__name__)

# message content type -> key field in the message content
_KEY_FIELDS = {
    "image": "imageKey",
    "video": "videoKey",
    "file": "fileKey",
}


def _part_source(part: OutgoingContentPart) -> Optional[str]:
    """Where to fetch a media part from: a URL, or a data URL built from
    inline base64.
    """
    ptype = part.get("type")
    for key in ("url", f"{ptype}_url", "file_url"):
        if part.get(key):
            return part[key]
    raw = part.get("base64") or part.get("data") or part.get("file_data")
    if not raw or not isinstance(raw, str):
        return None
    if raw.startswith(("data:", "http://", "https://")):
        return raw
    mime = part.get("media_type") or part.get("mime_type")
    if not mime:
        mime = "audio/mpeg" if ptype == "audio" else "application/octet-stream"
    return f"data:{mime};base64,{raw}"


class YunhuChannel(BaseChannel):
    """Yunhu channel for one bot account."""

    channel = "yunhu"

    def __init__(
        self,
        config: YunhuConfig,
        bot: BotConfig,
        *,
        http: Optional[BotHttp] = None,
        transcoder: Optional[FFmpegTranscoder] = None,
        on_reply_sent: OnReplySent = None,
    ):
        super().__init__(on_reply_sent=on_reply_sent)
        self.config = config
        self.enabled = config.enabled and bot.enabled
        self.bot_prefix = config.bot_prefix
        self.bot_id = bot.bot_id
        self.bot_name = bot.bot_name
        self.avatar: Optional[str] = None
        self.online = False

        self.http = http or BotHttp.from_config(config)
        self.internal = Internal(bot.token, self.http, config, transcoder)

    @classmethod
    def from_config(
        cls,
        config: YunhuConfig,
        on_reply_sent: OnReplySent = None,
        bot_name: Optional[str] = None,
    ) -> "YunhuChannel":
        return cls(
            config,
            config.get_bot(bot_name),
            on_reply_sent=on_reply_sent,
        )

    async def start(self) -> None:
        """Resolve the bot's nickname and avatar; the channel stays offline
        if the platform cannot be reached.
        """
        try:
            res = await self.internal.get_bot_info(self.bot_id)
        except YunhuError:
            logger.exception("yunhu failed to get bot info: %s", self.bot_id)
            self.online = False
            return
        if res.get("code") == SUCCESS_CODE:
            bot = (res.get("data") or {}).get("bot") or {}
            self.bot_name = bot.get("nickname") or self.bot_name
            self.bot_id = bot.get("botId") or self.bot_id
            if bot.get("avatarUrl"):
                self.avatar = await self.http.image_as_data_url(
                    bot["avatarUrl"],
                )
        self.online = True
        logger.info("yunhu channel started: bot=%s", self.bot_name)

    async def stop(self) -> None:
        self.online = False
        await self.http.close()

    async def send(
        self,
        to_handle: str,
        text: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Envelope:
        meta = meta or {}
        recv_type, recv_id = parse_channel_id(to_handle)
        content_type = "markdown" if meta.get("markdown") else "text"
        if self.config.enable_stream:
            return await self.internal.send_stream_message(
                recv_id,
                recv_type,
                content_type,
                text,
                self.config.stream_duration,
            )
        payload: Dict[str, Any] = {
            "recvId": recv_id,
            "recvType": recv_type,
            "contentType": content_type,
            "content": {"text": text},
        }
        if meta.get("parent_id"):
            payload["parentId"] = meta["parent_id"]
        return await self._send_payload(payload)

    async def send_media(
        self,
        to_handle: str,
        part: OutgoingContentPart,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Optional[Envelope]:
        kind = part.get("type")
        source = _part_source(part)
        if kind not in ("image", "video", "audio", "file") or not source:
            logger.warning(
                "yunhu send_media: nothing to upload, type=%s",
                kind,
            )
            return None

        try:
            result = await self.internal.upload(source, kind, want_key=True)
        except SizeLimitError as e:
            logger.warning("yunhu %s too large: %s", kind, e)
            size = f" ({e.size / MB:.1f}MB)" if e.size else ""
            await self.send(to_handle, f"[{kind} too large to send{size}]")
            return None
        except (YunhuError, ValueError):
            logger.exception("yunhu %s upload failed", kind)
            await self.send(to_handle, f"[{kind} upload failed]")
            return None

        content_type = "video" if kind == "audio" else kind
        recv_type, recv_id = parse_channel_id(to_handle)
        payload: Dict[str, Any] = {
            "recvId": recv_id,
            "recvType": recv_type,
            "contentType": content_type,
            "content": {_KEY_FIELDS[content_type]: result.key},
        }
        if (meta or {}).get("parent_id"):
            payload["parentId"] = meta["parent_id"]
        return await self._send_payload(payload)

    async def _send_payload(self, payload: Dict[str, Any]) -> Envelope:
        res = await self.internal.send_message(payload)
        if res.get("code") != SUCCESS_CODE:
            logger.warning(
                "yunhu send failed: contentType=%s code=%s msg=%s",
                payload.get("contentType"),
                res.get("code"),
                res.get("msg"),
            )
        return res
