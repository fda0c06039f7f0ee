# -*- coding: utf-8 -*-
import base64
from unittest.mock import MagicMock

import aiohttp
import pytest

from yunhu_adapter.app.channels.yunhu.channel import YunhuChannel, _part_source
from yunhu_adapter.app.channels.yunhu.errors import TransportError

from .conftest import MB, FakeTranscoder


@pytest.fixture
def channel(http, config):
    return YunhuChannel(
        config,
        config.bots[0],
        http=http,
        transcoder=FakeTranscoder(outputs=[b"muxed"]),
    )


def _messages(http):
    return [p["json"] for p in http.posts if p["url"] == "/bot/send"]


def test_part_source():
    assert _part_source({"type": "image", "url": "https://a"}) == "https://a"
    assert _part_source({"type": "image", "image_url": "https://b"}) == "https://b"
    assert _part_source({"type": "file", "file_url": "https://c"}) == "https://c"
    assert (
        _part_source({"type": "audio", "data": "QUJD"})
        == "data:audio/mpeg;base64,QUJD"
    )
    assert (
        _part_source(
            {"type": "image", "base64": "QUJD", "media_type": "image/png"},
        )
        == "data:image/png;base64,QUJD"
    )
    assert _part_source({"type": "video"}) is None


@pytest.mark.asyncio
async def test_send_text(channel, http):
    await channel.send("group:g1", "hello", {"parent_id": "m0"})
    assert _messages(http) == [
        {
            "recvId": "g1",
            "recvType": "group",
            "contentType": "text",
            "content": {"text": "hello"},
            "parentId": "m0",
        },
    ]


@pytest.mark.asyncio
async def test_send_markdown(channel, http):
    await channel.send("private:u1", "**hi**", {"markdown": True})
    assert _messages(http)[0]["contentType"] == "markdown"
    assert _messages(http)[0]["recvType"] == "user"


@pytest.mark.asyncio
async def test_send_content_parts(channel, http):
    http.add_file("https://src/a.png", b"png", "image/png", "a.png")
    on_sent = MagicMock()
    channel._on_reply_sent = on_sent

    await channel.send_content_parts(
        "private:u1",
        [
            {"type": "text", "text": "look"},
            {"type": "image", "url": "https://src/a.png"},
            {"type": "refusal", "refusal": "partly"},
        ],
        {"bot_prefix": "[bot] ", "session_id": "s1"},
    )

    messages = _messages(http)
    assert messages[0]["content"] == {"text": "[bot] look\npartly"}
    assert messages[1]["contentType"] == "image"
    assert messages[1]["content"] == {"imageKey": "key-1"}
    on_sent.assert_called_once_with("yunhu", "private:u1", "s1")


@pytest.mark.asyncio
async def test_audio_sent_as_video(channel, http):
    payload = base64.b64encode(b"ID3audio").decode()
    await channel.send_media(
        "private:u1",
        {"type": "audio", "data": payload, "filename": "a.mp3"},
    )
    assert http.downloads[0].startswith("data:audio/mpeg;base64,")
    message = _messages(http)[0]
    assert message["contentType"] == "video"
    assert message["content"] == {"videoKey": "key-1"}


@pytest.mark.asyncio
async def test_oversized_media_sends_notice(channel, http):
    http.add_file("https://src/big.png", b"p" * (12 * MB), "image/png")
    await channel.send_media(
        "group:g1",
        {"type": "image", "url": "https://src/big.png"},
    )
    assert http.uploads == []
    assert _messages(http)[0]["content"] == {
        "text": "[image too large to send (12.0MB)]",
    }


@pytest.mark.asyncio
async def test_failed_media_sends_notice(channel, http):
    http.files["https://src/gone"] = TransportError(
        "file failed",
        last_error=aiohttp.ClientError("404"),
    )
    await channel.send_media("group:g1", {"type": "file", "url": "https://src/gone"})
    assert _messages(http)[0]["content"] == {"text": "[file upload failed]"}


@pytest.mark.asyncio
async def test_media_without_source_is_skipped(channel, http):
    assert await channel.send_media("group:g1", {"type": "image"}) is None
    assert http.posts == []


@pytest.mark.asyncio
async def test_start_and_stop(channel, http):
    http.web_responses["/bot/bot-info"] = {
        "code": 1,
        "data": {"bot": {"botId": "bot-1", "nickname": "Helper", "avatarUrl": "x"}},
    }
    await channel.start()
    assert channel.online is True
    assert channel.bot_name == "Helper"
    assert channel.avatar == "avatar:x"

    await channel.stop()
    assert channel.online is False
    assert http.closed is True


def test_from_config_picks_bot(config):
    channel = YunhuChannel.from_config(config, bot_name="bot-1")
    assert channel.bot_id == "bot-1"
    assert channel.internal.token == "tok"
    assert channel.enabled is True


@pytest.mark.asyncio
async def test_malformed_upload_reply_sends_failure_notice(channel, http):
    http.add_file("https://src/a.pdf", b"%PDF", "application/pdf", "a.pdf")
    http.post_responses.append(None)

    await channel.send_content_parts(
        "group:g1",
        [{"type": "file", "url": "https://src/a.pdf"}],
    )

    assert _messages(http)[0]["content"] == {"text": "[file upload failed]"}
