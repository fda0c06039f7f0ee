# -*- coding: utf-8 -*-
# pylint: disable=too-few-public-methods
"""Yunhu media uploaders.

Each uploader downloads a source URL, validates or transcodes it, submits a
multipart form to ``<endpoint>/<kind>/upload?token=<token>`` and returns the
public resource URL (plus the platform key on request).

- image: MIME allow-list, 10MB, URL stem is the MD5 of the bytes.
- video: 20MB, one compression pass when larger, URL ``<key>.mp4``.
- audio: muxed into a 640x480 solid-colour video, then as video.
- file: 100MB, passthrough, URL ``<key>.<ext>``.
"""
from __future__ import annotations

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple, Union

from ....config.config import YunhuConfig
from ....constant import (
    FILE_MAX_BYTES,
    IMAGE_MAX_BYTES,
    MB,
    SUCCESS_CODE,
    VIDEO_MAX_BYTES,
)
from ..schema import AssetKind, UploadResult
from .errors import (
    CompressionError,
    FormatError,
    SizeLimitError,
    TransportError,
    UploadError,
)
from .http import BotHttp, FetchedFile
from .transcode import (
    FFmpegTranscoder,
    compress_video,
    parse_rgba_to_hex,
    temp_asset,
)

logger = logging.getLogger(__name__)

MAX_SIZES: Dict[str, int] = {
    "image": IMAGE_MAX_BYTES,
    "video": VIDEO_MAX_BYTES,
    "audio": VIDEO_MAX_BYTES,
    "file": FILE_MAX_BYTES,
}

VALID_IMAGE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/bmp",
        "image/tiff",
        "image/svg+xml",
        "image/x-icon",
    },
)

# Messages from the upload API that mean "too large".
_SIZE_HINTS = ("大小", "size")


def _split_ext(filename: Optional[str]) -> Tuple[str, str]:
    """``"a.b.png"`` -> ``("a.b", "png")``; no extension -> ``(name, "")``."""
    stem, ext = os.path.splitext(filename or "")
    return stem, ext.lstrip(".")


def _mime_subtype(mime: Optional[str]) -> str:
    if not mime or "/" not in mime:
        return ""
    return mime.split("/", 1)[1]


def _mb(size: int) -> str:
    return f"{size / MB:.2f}MB"


class BaseUploader(ABC):
    """Shared upload contract: size ceiling, form submission, response
    classification.
    """

    kind: AssetKind
    # Endpoint path segment, form field and ``<kind>Key`` response field.
    upload_kind: str

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
        self.transcoder = transcoder or FFmpegTranscoder(config.ffmpeg_path)
        self.max_size = MAX_SIZES[self.kind]

    def _log(self, msg: str, *args) -> None:
        level = logging.INFO if self.config.logger_info else logging.DEBUG
        logger.log(level, msg, *args)

    @property
    def resource_endpoint(self) -> str:
        return self.config.resource_endpoint

    def _check_size(self, size: int, what: str) -> None:
        if size > self.max_size:
            message = (
                f"{what} size {_mb(size)} exceeds the "
                f"{self.max_size // MB}MB limit"
            )
            logger.error("yunhu %s", message)
            raise SizeLimitError(self.kind, size, message)

    async def upload(self, url: str) -> str:
        """Upload ``url`` and return the public resource URL."""
        result = await self.upload_get_key(url)
        return result.url

    async def upload_get_key(self, url: str) -> UploadResult:
        """Upload ``url`` and return both the public URL and platform key."""
        if len(url) < 500:
            self._log("yunhu %s upload source: %s", self.kind, url)
        fetched = await self.http.file(url)
        result = await self._process(fetched)
        self._log("yunhu %s uploaded: url=%s", self.kind, result.url)
        return result

    @abstractmethod
    async def _process(self, fetched: FetchedFile) -> UploadResult:
        """Validate/transform the downloaded payload and submit it."""

    async def send_form(self, data: bytes, filename: str, mime: str) -> str:
        """POST one file part and return the platform-issued key."""
        url = f"{self.config.endpoint.rstrip('/')}/{self.upload_kind}/upload"
        try:
            res = await self.http.post(
                url,
                params={"token": self.token},
                files={self.upload_kind: (filename, data, mime)},
            )
        except TransportError as e:
            logger.error(
                "yunhu %s upload request failed: %s",
                self.upload_kind,
                e.last_error,
            )
            raise UploadError(
                self.kind,
                f"{self.upload_kind} upload failed: {e.last_error}",
            ) from e
        except ValueError as e:
            # 2xx with a body that is not JSON (e.g. a proxy error page)
            logger.error(
                "yunhu %s upload returned a non-JSON body: %s",
                self.upload_kind,
                e,
            )
            raise UploadError(
                self.kind,
                f"{self.upload_kind} upload returned an unreadable "
                f"response: {e}",
            ) from e
        if not isinstance(res, dict):
            logger.error(
                "yunhu %s upload returned %r",
                self.upload_kind,
                res,
            )
            raise UploadError(
                self.kind,
                f"{self.upload_kind} upload returned an empty or "
                "malformed response",
            )

        code = res.get("code")
        msg = res.get("msg") or ""
        if code != SUCCESS_CODE:
            if any(hint in msg.lower() for hint in _SIZE_HINTS):
                raise SizeLimitError(
                    self.kind,
                    len(data),
                    f"{self.upload_kind} upload rejected: {msg}",
                )
            raise UploadError(
                self.kind,
                f"{self.upload_kind} upload failed: {msg} (code {code})",
                code=code,
            )

        key = res["data"][f"{self.upload_kind}Key"]
        self._log("yunhu %s upload ok: key=%s", self.upload_kind, key)
        return key


class ImageUploader(BaseUploader):
    kind = "image"
    upload_kind = "image"

    async def _process(self, fetched: FetchedFile) -> UploadResult:
        data = fetched.data
        mime = fetched.mime
        self._log("yunhu image: mime=%s size=%s", mime, _mb(len(data)))
        if mime not in VALID_IMAGE_TYPES:
            logger.error("yunhu unsupported image format: %s", mime)
            raise FormatError(mime)
        self._check_size(len(data), "image")

        ext = _mime_subtype(mime)
        # Objects uploaded as .jpeg are only served under .jpg.
        if ext == "jpeg":
            ext = "jpg"
        stem, name_ext = _split_ext(fetched.filename)
        # The form part must carry the served extension for jpeg.
        if not name_ext or ext == "jpg":
            filename = f"{stem or 'image'}.{ext}"
        elif name_ext.lower() == "jpeg":
            filename = f"{stem}.jpg"
        else:
            filename = fetched.filename

        # Same bytes -> same URL, whatever key the platform hands out.
        digest = hashlib.md5(data).hexdigest()
        self._log("yunhu image hash=%s ext=%s", digest, ext)

        key = await self.send_form(data, filename, mime)
        return UploadResult(
            url=f"{self.resource_endpoint}{digest}.{ext}",
            key=key,
        )


class VideoUploader(BaseUploader):
    kind = "video"
    upload_kind = "video"

    async def _process(self, fetched: FetchedFile) -> UploadResult:
        data = fetched.data
        mime = fetched.mime or "video/mp4"
        ext = _mime_subtype(fetched.mime) or "mp4"
        filename = fetched.filename
        self._log("yunhu video: original size=%s", _mb(len(data)))

        if len(data) > self.max_size:
            data = await compress_video(
                data,
                self.max_size,
                self.transcoder,
                kind=self.kind,
                temp_dir=self.config.temp_dir,
            )
            # ffmpeg output is always mp4
            mime, ext = "video/mp4", "mp4"
            filename = f"{_split_ext(filename)[0] or 'video'}.mp4"
        self._check_size(len(data), "video")

        if not _split_ext(filename)[1]:
            filename = f"{filename or 'video'}.{ext}"
        key = await self.send_form(data, filename, mime)
        # The CDN serves every video under .mp4
        return UploadResult(url=f"{self.resource_endpoint}{key}.mp4", key=key)


class AudioUploader(BaseUploader):
    """Audio has no usable asset type; it is remuxed into a silent-picture
    video and uploaded as video.
    """

    kind = "audio"
    upload_kind = "video"

    async def _process(self, fetched: FetchedFile) -> UploadResult:
        audio_name = fetched.filename or "audio.mp3"
        stem, audio_ext = _split_ext(audio_name)
        color = parse_rgba_to_hex(self.config.audio_background_color)
        temp_dir = self.config.temp_dir

        with temp_asset(
            f".{audio_ext}" if audio_ext else "",
            "audio_",
            temp_dir,
        ) as audio_in, temp_asset(
            ".mp4",
            "video_from_audio_",
            temp_dir,
        ) as video_out:
            audio_in.write_bytes(fetched.data)
            self._log("yunhu audio -> video: color=%s", color)
            await self.transcoder.mux_audio(audio_in, video_out, color)
            video = video_out.read_bytes()
            if not video:
                raise CompressionError("ffmpeg produced an empty video")
            self._log("yunhu audio converted: size=%s", _mb(len(video)))

            if len(video) > self.max_size:
                video = await compress_video(
                    video,
                    self.max_size,
                    self.transcoder,
                    kind=self.kind,
                    temp_dir=temp_dir,
                )
            self._check_size(len(video), "converted audio video")

        key = await self.send_form(video, f"{stem or 'audio'}.mp4", "video/mp4")
        return UploadResult(url=f"{self.resource_endpoint}{key}.mp4", key=key)


class FileUploader(BaseUploader):
    kind = "file"
    upload_kind = "file"

    async def _process(self, fetched: FetchedFile) -> UploadResult:
        data = fetched.data
        self._check_size(len(data), "file")

        _, ext = _split_ext(fetched.filename)
        filename = fetched.filename
        if not ext:
            ext = _mime_subtype(fetched.mime) or "dat"
            filename = f"{fetched.filename or 'file'}.{ext}"

        key = await self.send_form(
            data,
            filename,
            fetched.mime or "application/octet-stream",
        )
        return UploadResult(url=f"{self.resource_endpoint}{key}.{ext}", key=key)


_UPLOADER_CLASSES: Dict[str, type] = {
    "image": ImageUploader,
    "video": VideoUploader,
    "audio": AudioUploader,
    "file": FileUploader,
}


class MediaUploader:
    """Entry point of the pipeline: ``upload(source_url, kind, want_key)``."""

    def __init__(
        self,
        token: str,
        http: BotHttp,
        config: YunhuConfig,
        transcoder: Optional[FFmpegTranscoder] = None,
    ):
        transcoder = transcoder or FFmpegTranscoder(config.ffmpeg_path)
        self._uploaders: Dict[str, BaseUploader] = {
            kind: cls(token, http, config, transcoder)
            for kind, cls in _UPLOADER_CLASSES.items()
        }

    def for_kind(self, kind: str) -> BaseUploader:
        try:
            return self._uploaders[kind]
        except KeyError:
            raise ValueError(f"unknown asset kind: {kind}") from None

    async def upload(
        self,
        source_url: str,
        kind: AssetKind,
        want_key: bool = False,
    ) -> Union[str, UploadResult]:
        uploader = self.for_kind(kind)
        result = await uploader.upload_get_key(source_url)
        return result if want_key else result.url
