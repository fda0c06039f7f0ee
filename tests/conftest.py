# -*- coding: utf-8 -*-
"""
Shared fixtures: an in-memory stand-in for BotHttp and a fake ffmpeg that
writes canned outputs (or fails) so the pipeline runs without network or
real transcoding.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

from yunhu_adapter.app.channels.yunhu.errors import CompressionError
from yunhu_adapter.app.channels.yunhu.http import FetchedFile, parse_data_url
from yunhu_adapter.app.channels.yunhu.transcode import FFmpegTranscoder
from yunhu_adapter.config import BotConfig, YunhuConfig

MB = 1024 * 1024
RESOURCE_ENDPOINT = "https://res.example.com/"


class FakeHttp:
    """Records every call; uploads answer with fresh keys key-1, key-2..."""

    def __init__(self) -> None:
        self.files: Dict[str, Any] = {}
        self.downloads: List[str] = []
        self.posts: List[Dict[str, Any]] = []
        self.gets: List[Dict[str, Any]] = []
        self.post_responses: List[Any] = []
        self.web_responses: Dict[str, Any] = {}
        self.get_responses: Dict[str, Any] = {}
        self.closed = False
        self._key_seq = 0

    def add_file(
        self,
        url: str,
        data: bytes,
        mime: Optional[str],
        filename: str = "",
    ) -> None:
        self.files[url] = FetchedFile(data=data, filename=filename, mime=mime)

    @property
    def uploads(self) -> List[Dict[str, Any]]:
        return [p for p in self.posts if p["files"]]

    async def file(self, url: str, referer: str = "") -> FetchedFile:
        self.downloads.append(url)
        if url.startswith("data:"):
            data, mime = parse_data_url(url)
            return FetchedFile(data=data, filename="file", mime=mime)
        item = self.files[url]
        if isinstance(item, BaseException):
            raise item
        return item

    async def post(
        self,
        url: str,
        json: Any = None,
        *,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        self.posts.append(
            {"url": url, "json": json, "params": params, "files": files},
        )
        if self.post_responses:
            res = self.post_responses.pop(0)
            if isinstance(res, BaseException):
                raise res
            return res
        if files:
            self._key_seq += 1
            field = next(iter(files))
            return {"code": 1, "data": {f"{field}Key": f"key-{self._key_seq}"}}
        return {"code": 1, "msg": "success", "data": {"messageInfo": {}}}

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None):
        self.gets.append({"url": url, "params": params})
        return self.get_responses.get(url, {"code": 1, "data": {}})

    async def get_web(self, url: str, params: Optional[Dict[str, Any]] = None):
        self.gets.append({"url": url, "params": params, "web": True})
        return self.web_responses.get(url, {"code": 1, "data": {}})

    async def post_web(self, url: str, json: Any = None, *, params=None):
        self.posts.append(
            {"url": url, "json": json, "params": params, "files": None},
        )
        return self.web_responses.get(url, {"code": 1, "data": {}})

    async def image_as_data_url(self, url: str) -> str:
        return f"avatar:{url}"

    async def close(self) -> None:
        self.closed = True


class FakeTranscoder(FFmpegTranscoder):
    """Writes the next canned output to the last argument (the output
    path), or raises CompressionError when ``fail`` is set.
    """

    def __init__(
        self,
        outputs: Sequence[bytes] = (),
        fail: bool = False,
    ) -> None:
        super().__init__("fake-ffmpeg")
        self.outputs = list(outputs)
        self.fail = fail
        self.calls: List[List[str]] = []
        self.inputs_existed: List[bool] = []

    async def run(self, args: Sequence[str]) -> None:
        args = list(args)
        self.calls.append(args)
        inputs = [args[i + 1] for i, a in enumerate(args[:-1]) if a == "-i"]
        self.inputs_existed.append(
            all(Path(p).exists() for p in inputs if not p.startswith("color=")),
        )
        if self.fail:
            raise CompressionError("fake ffmpeg exited with code 1")
        Path(args[-1]).write_bytes(self.outputs.pop(0))

    def crf_of(self, call: int) -> int:
        args = self.calls[call]
        return int(args[args.index("-crf") + 1])


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    d = tmp_path / "media_tmp"
    d.mkdir()
    return d


@pytest.fixture
def config(temp_dir: Path) -> YunhuConfig:
    return YunhuConfig(
        enabled=True,
        bots=[BotConfig(bot_name="test", bot_id="bot-1", token="tok")],
        resource_endpoint=RESOURCE_ENDPOINT,
        audio_background_color="rgba(17, 34, 51, 1)",
        temp_dir=str(temp_dir),
        logger_info=True,
    )


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()
