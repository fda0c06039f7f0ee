# -*- coding: utf-8 -*-
"""Yunhu channel: HTTP client, media upload pipeline and Open API calls."""

from .channel import YunhuChannel
from .errors import (
    ApiError,
    CompressedTooLargeError,
    CompressionError,
    FormatError,
    SizeLimitError,
    TransportError,
    UploadError,
    YunhuError,
)
from .http import BotHttp, FetchedFile, retry_async
from .internal import Internal, parse_channel_id
from .transcode import (
    CompressionPlan,
    FFmpegTranscoder,
    compress_video,
    parse_rgba_to_hex,
    plan_compression,
)
from .uploader import (
    AudioUploader,
    BaseUploader,
    FileUploader,
    ImageUploader,
    MediaUploader,
    VideoUploader,
)

__all__ = [
    # channel
    "YunhuChannel",
    "Internal",
    "parse_channel_id",
    # http
    "BotHttp",
    "FetchedFile",
    "retry_async",
    # media
    "AudioUploader",
    "BaseUploader",
    "FileUploader",
    "ImageUploader",
    "MediaUploader",
    "VideoUploader",
    "CompressionPlan",
    "FFmpegTranscoder",
    "compress_video",
    "parse_rgba_to_hex",
    "plan_compression",
    # errors
    "ApiError",
    "CompressedTooLargeError",
    "CompressionError",
    "FormatError",
    "SizeLimitError",
    "TransportError",
    "UploadError",
    "YunhuError",
]
