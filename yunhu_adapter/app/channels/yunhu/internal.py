# -*- coding: utf-8 -*-
"""Yunhu Open API / web API calls used by the channel.

Responses are the platform's raw envelope ``{"code", "msg", "data"}``;
``ensure_ok`` turns a failure envelope into ApiError where callers need it.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

import aiohttp

from ....config.config import YunhuConfig
from ....constant import SUCCESS_CODE
from ..schema import AssetKind, UploadResult
from .errors import ApiError, YunhuError
from .http import BotHttp
from .transcode import FFmpegTranscoder
from .uploader import MediaUploader

logger = logging.getLogger(__name__)

Envelope = Dict[str, Any]


def parse_channel_id(channel_id: str) -> Tuple[str, str]:
    """``"private:<userId>"`` -> ``("user", userId)``;
    ``"group:<chatId>"`` -> ``("group", chatId)``.
    """
    kind, sep, target = channel_id.partition(":")
    if not sep or not target:
        raise ValueError(f"invalid yunhu channel id: {channel_id!r}")
    return ("user" if kind == "private" else kind), target


def ensure_ok(res: Envelope) -> Envelope:
    if res.get("code") != SUCCESS_CODE:
        raise ApiError(res.get("code"), res.get("msg") or "")
    return res


class Internal:
    def __init__(
        self,
        token: str,
        http: BotHttp,
        config: YunhuConfig,
        transcoder: Optional[FFmpegTranscoder] = None,
    ):
        self.token = token
        self.http = http
        self.config = config
        self.media = MediaUploader(token, http, config, transcoder)

    def _params(self, **extra: Any) -> Dict[str, Any]:
        return {"token": self.token, **extra}

    # ---------------------------
    # Messages
    # ---------------------------

    async def send_message(self, payload: Dict[str, Any]) -> Envelope:
        return await self.http.post(
            "/bot/send",
            payload,
            params=self._params(),
        )

    async def send_stream_message(
        self,
        recv_id: str,
        recv_type: str,
        content_type: str,
        text: str,
        duration: Optional[float] = None,
    ) -> Envelope:
        """Send ``text`` as a stream, spreading characters over
        ``duration`` seconds. Failures come back as an envelope with a
        negative code rather than raising.
        """
        total = duration or self.config.stream_duration

        async def chunks() -> AsyncIterator[bytes]:
            if not text:
                return
            delay = total / len(text)
            for ch in text:
                yield ch.encode("utf-8")
                await asyncio.sleep(delay)

        headers = {
            "Content-Type": "text/markdown"
            if content_type == "markdown"
            else "text/plain",
        }
        try:
            status, body = await self.http.post_stream(
                "/bot/send-stream",
                chunks(),
                params=self._params(
                    recvId=recv_id,
                    recvType=recv_type,
                    contentType=content_type,
                ),
                headers=headers,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.exception("yunhu stream message failed")
            return {"code": -1, "msg": str(e), "data": None}
        if status >= 400:
            logger.error(
                "yunhu stream message failed: status=%s body=%s",
                status,
                body[:500],
            )
            return {"code": -status, "msg": f"HTTP Error: {body}", "data": None}
        try:
            data = json.loads(body)
            if not isinstance(data, dict):
                raise ValueError("unexpected stream response")
            return ensure_ok(data)
        except (ValueError, ApiError) as e:
            return {"code": getattr(e, "code", -1), "msg": str(e), "data": None}

    async def edit_message(self, payload: Dict[str, Any]) -> Envelope:
        if not payload or not payload.get("content"):
            logger.error("yunhu edit_message: empty content %s", payload)
            raise ValueError("edit_message: content must not be empty")
        return await self.http.post(
            "/bot/edit",
            payload,
            params=self._params(),
        )

    async def recall_message(
        self,
        channel_id: str,
        msg_id: Union[str, List[str]],
    ) -> Union[Envelope, List[Envelope]]:
        chat_type, chat_id = parse_channel_id(channel_id)
        if isinstance(msg_id, list):
            return list(
                await asyncio.gather(
                    *(
                        self._recall_one(chat_id, chat_type, m)
                        for m in msg_id
                    ),
                ),
            )
        return await self._recall_one(chat_id, chat_type, msg_id)

    async def _recall_one(
        self,
        chat_id: str,
        chat_type: str,
        msg_id: str,
    ) -> Envelope:
        payload = {"msgId": msg_id, "chatId": chat_id, "chatType": chat_type}
        logger.debug("yunhu recall: %s", payload)
        return await self.http.post(
            "/bot/recall",
            payload,
            params=self._params(),
        )

    async def get_message_list(
        self,
        channel_id: str,
        message_id: str,
        before: int = 1,
        after: int = 1,
    ) -> Envelope:
        chat_type, chat_id = parse_channel_id(channel_id)
        return await self.http.get(
            "/bot/messages",
            params=self._params(
                **{
                    "chat-id": chat_id,
                    "chat-type": chat_type,
                    "message-id": message_id,
                    "before": before,
                    "after": after,
                },
            ),
        )

    async def get_message(
        self,
        channel_id: str,
        message_id: str,
    ) -> Optional[Dict[str, Any]]:
        """Return the raw message dict for ``message_id``, or None."""
        res = await self.get_message_list(channel_id, message_id)
        if res.get("code") != SUCCESS_CODE:
            return None
        for item in (res.get("data") or {}).get("list") or []:
            if item.get("msgId") == message_id:
                return item
        return None

    # ---------------------------
    # Users / groups / bots
    # ---------------------------

    async def get_bot_info(self, bot_id: str) -> Envelope:
        return await self.http.post_web("/bot/bot-info", {"botId": bot_id})

    async def get_group(self, group_id: str) -> Dict[str, Any]:
        res = ensure_ok(
            await self.http.post_web(
                "/group/group-info",
                {"groupId": group_id},
            ),
        )
        group = res["data"]["group"]
        return {
            "id": group["groupId"],
            "name": group.get("name"),
            "avatar": await self._avatar(group.get("avatarUrl")),
        }

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        """Look up a user; ids that are not users are tried as bots."""
        res = await self.http.get_web(
            "/user/homepage",
            params={"userId": user_id},
        )
        user = ((res or {}).get("data") or {}).get("user") or {}
        if user.get("userId"):
            return {
                "id": user["userId"],
                "name": user.get("nickname"),
                "avatar": await self._avatar(user.get("avatarUrl")),
                "is_bot": False,
            }

        try:
            bot_res = await self.get_bot_info(user_id)
        except YunhuError:
            logger.exception("yunhu get_bot_info failed for %s", user_id)
        else:
            bot = ((bot_res or {}).get("data") or {}).get("bot") or {}
            if bot.get("botId"):
                return {
                    "id": bot["botId"],
                    "name": bot.get("nickname"),
                    "avatar": await self._avatar(bot.get("avatarUrl")),
                    "is_bot": True,
                }
        raise LookupError(f"no yunhu user or bot with id {user_id}")

    async def _avatar(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        return await self.http.image_as_data_url(url)

    # ---------------------------
    # Boards
    # ---------------------------

    async def set_board(
        self,
        channel_id: str,
        content_type: str,
        content: str,
        member_id: Optional[str] = None,
        expire_time: Optional[int] = None,
    ) -> Envelope:
        chat_type, chat_id = parse_channel_id(channel_id)
        payload: Dict[str, Any] = {
            "chatId": chat_id,
            "chatType": chat_type,
            "contentType": content_type,
            "content": content,
        }
        if member_id:
            payload["memberId"] = member_id
        if expire_time is not None:
            payload["expireTime"] = expire_time
        return await self.http.post(
            "/bot/board",
            payload,
            params=self._params(),
        )

    async def set_all_board(
        self,
        content_type: str,
        content: str,
        expire_time: Optional[int] = None,
    ) -> Envelope:
        payload: Dict[str, Any] = {
            "contentType": content_type,
            "content": content,
        }
        if expire_time is not None:
            payload["expireTime"] = expire_time
        return await self.http.post(
            "/bot/board-all",
            payload,
            params=self._params(),
        )

    async def dismiss_board(
        self,
        channel_id: str,
        member_id: Optional[str] = None,
    ) -> Envelope:
        chat_type, chat_id = parse_channel_id(channel_id)
        payload: Dict[str, Any] = {"chatId": chat_id, "chatType": chat_type}
        if member_id and chat_type == "group":
            payload["memberId"] = member_id
        return await self.http.post(
            "/bot/board-dismiss",
            payload,
            params=self._params(),
        )

    async def dismiss_all_board(self) -> Envelope:
        return await self.http.post(
            "/bot/board-all-dismiss",
            {},
            params=self._params(),
        )

    # ---------------------------
    # Media
    # ---------------------------

    async def upload(
        self,
        url: str,
        kind: AssetKind,
        want_key: bool = False,
    ) -> Union[str, UploadResult]:
        return await self.media.upload(url, kind, want_key)

    async def upload_image(self, url: str) -> str:
        return await self.media.for_kind("image").upload(url)

    async def upload_video(self, url: str) -> str:
        return await self.media.for_kind("video").upload(url)

    async def upload_audio(self, url: str) -> str:
        return await self.media.for_kind("audio").upload(url)

    async def upload_file(self, url: str) -> str:
        return await self.media.for_kind("file").upload(url)

    async def upload_image_key(self, url: str) -> UploadResult:
        return await self.media.for_kind("image").upload_get_key(url)

    async def upload_video_key(self, url: str) -> UploadResult:
        return await self.media.for_kind("video").upload_get_key(url)

    async def upload_audio_key(self, url: str) -> UploadResult:
        return await self.media.for_kind("audio").upload_get_key(url)

    async def upload_file_key(self, url: str) -> UploadResult:
        return await self.media.for_kind("file").upload_get_key(url)
