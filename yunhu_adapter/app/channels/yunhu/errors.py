# -*- coding: utf-8 -*-
"""Errors raised by the Yunhu API client and media upload pipeline."""
from __future__ import annotations

from typing import Optional


class YunhuError(RuntimeError):
    """Base for all Yunhu adapter errors."""


class FormatError(YunhuError):
    """Unsupported media format (image MIME outside the allow-list)."""

    def __init__(self, mime: Optional[str]):
        self.mime = mime
        super().__init__(f"unsupported image format: {mime}")


class SizeLimitError(YunhuError):
    """Payload exceeds the ceiling of its asset kind.

    ``size`` is the measured payload size in bytes, when known.
    """

    def __init__(self, kind: str, size: Optional[int], message: str):
        self.kind = kind
        self.size = size
        super().__init__(message)


class TransportError(YunhuError):
    """Network failure after every retry attempt was used."""

    def __init__(self, message: str, last_error: BaseException):
        self.last_error = last_error
        super().__init__(message)


class UploadError(YunhuError):
    """Platform rejected an upload, or the upload request itself failed."""

    def __init__(
        self,
        kind: str,
        message: str,
        code: Optional[int] = None,
    ):
        self.kind = kind
        self.code = code
        super().__init__(message)


class CompressionError(YunhuError):
    """External transcoder failed."""


class CompressedTooLargeError(SizeLimitError, CompressionError):
    """Compression ran once and the result is still over the ceiling."""

    def __init__(self, kind: str, size: int, max_size: int):
        self.max_size = max_size
        SizeLimitError.__init__(
            self,
            kind,
            size,
            f"{kind} still {size / (1024 * 1024):.2f}MB after compression, "
            f"limit is {max_size / (1024 * 1024):.0f}MB",
        )


class ApiError(YunhuError):
    """Non-upload API call answered with a failure envelope."""

    def __init__(self, code: Optional[int], message: str):
        self.code = code
        super().__init__(f"yunhu api error code={code}: {message}")
