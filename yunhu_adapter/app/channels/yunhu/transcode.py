# -*- coding: utf-8 -*-
"""ffmpeg helpers for the media pipeline: audio-to-video muxing and
single-pass adaptive video compression.

Intermediate files live only inside ``temp_asset`` blocks, which delete them
on every exit path.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

from ....constant import AUDIO_BITRATE, AUDIO_VIDEO_SIZE, MB
from .errors import CompressedTooLargeError, CompressionError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# CRF model: start at 28, +6 per doubling of the overshoot, capped at 45.
BASE_CRF = 28
CRF_PER_DOUBLING = 6
MAX_CRF = 45
# Aim below the ceiling, not at it.
SIZE_SAFETY_FACTOR = 0.9

FALLBACK_COLOR = "0x800080"

_RGBA_RE = re.compile(r"rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)")


@dataclass(frozen=True)
class CompressionPlan:
    size_ratio: float
    target_quality: int


def plan_compression(original_size: int, max_size: int) -> CompressionPlan:
    """Estimate the x264 CRF needed to bring ``original_size`` under
    ``max_size``.
    """
    if original_size <= 0 or max_size <= 0:
        raise ValueError("sizes must be positive")
    size_ratio = original_size / (max_size * SIZE_SAFETY_FACTOR)
    crf = math.ceil(BASE_CRF + CRF_PER_DOUBLING * math.log2(size_ratio))
    return CompressionPlan(
        size_ratio=size_ratio,
        target_quality=min(crf, MAX_CRF),
    )


def parse_rgba_to_hex(color: str) -> str:
    """``"rgba(128, 0, 128, 1)"`` -> ``"0x800080"`` (alpha ignored)."""
    m = _RGBA_RE.search(color or "")
    if not m:
        return FALLBACK_COLOR
    r, g, b = (min(int(v), 255) for v in m.groups())
    return f"0x{r:02x}{g:02x}{b:02x}"


@contextlib.contextmanager
def temp_asset(
    suffix: str = "",
    prefix: str = "yunhu_",
    directory: Optional[PathLike] = None,
) -> Iterator[Path]:
    """Reserve a temp file path; the file is removed when the block exits.
    Deletion errors are ignored so they never hide the block's own error.
    """
    fd, name = tempfile.mkstemp(
        suffix=suffix,
        prefix=prefix,
        dir=str(directory) if directory else None,
    )
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        with contextlib.suppress(OSError):
            path.unlink()


class FFmpegTranscoder:
    """Runs ffmpeg as a subprocess. Any failure raises CompressionError."""

    def __init__(
        self,
        binary: str = "ffmpeg",
        timeout: Optional[float] = None,
    ):
        self.binary = binary
        self.timeout = timeout

    async def run(self, args: Sequence[str]) -> None:
        cmd = [self.binary, "-hide_banner", "-loglevel", "error", "-y"]
        cmd.extend(args)
        logger.debug("ffmpeg: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CompressionError(
                f"ffmpeg not found: {self.binary}",
            ) from e
        try:
            _, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise CompressionError(
                f"ffmpeg timed out after {self.timeout}s",
            ) from e
        if proc.returncode != 0:
            tail = (stderr or b"").decode(errors="ignore")[-500:]
            raise CompressionError(
                f"ffmpeg exited with code {proc.returncode}: {tail}",
            )

    async def mux_audio(
        self,
        audio_path: PathLike,
        output_path: PathLike,
        color: str,
    ) -> None:
        """Audio + solid ``color`` picture -> H.264/AAC mp4 as long as the
        audio.
        """
        await self.run(
            [
                "-f",
                "lavfi",
                "-i",
                f"color=c={color}:s={AUDIO_VIDEO_SIZE}:r=1",
                "-i",
                str(audio_path),
                "-shortest",
                "-c:v",
                "libx264",
                "-c:a",
                "aac",
                "-b:a",
                AUDIO_BITRATE,
                "-preset",
                "fast",
                str(output_path),
            ],
        )

    async def compress(
        self,
        input_path: PathLike,
        output_path: PathLike,
        crf: int,
    ) -> None:
        """Re-encode video at ``crf``; audio stream copied."""
        await self.run(
            [
                "-i",
                str(input_path),
                "-c:v",
                "libx264",
                "-crf",
                str(crf),
                "-preset",
                "fast",
                "-c:a",
                "copy",
                str(output_path),
            ],
        )


async def compress_video(
    data: bytes,
    max_size: int,
    transcoder: FFmpegTranscoder,
    *,
    kind: str = "video",
    temp_dir: Optional[PathLike] = None,
) -> bytes:
    """Compress ``data`` once at the estimated CRF.

    Raises CompressionError if ffmpeg fails and CompressedTooLargeError if
    the result is still larger than ``max_size``; there is no second pass.
    """
    plan = plan_compression(len(data), max_size)
    logger.info(
        "yunhu compress %s: size=%.2fMB ratio=%.2fx crf=%s",
        kind,
        len(data) / MB,
        plan.size_ratio,
        plan.target_quality,
    )
    with temp_asset(".mp4", "compress_input_", temp_dir) as src, temp_asset(
        ".mp4",
        "compress_output_",
        temp_dir,
    ) as dst:
        src.write_bytes(data)
        await transcoder.compress(src, dst, plan.target_quality)
        compressed = dst.read_bytes()

    if not compressed:
        raise CompressionError("ffmpeg produced an empty file")
    logger.info(
        "yunhu compress %s: %.2fMB -> %.2fMB",
        kind,
        len(data) / MB,
        len(compressed) / MB,
    )
    if len(compressed) > max_size:
        raise CompressedTooLargeError(kind, len(compressed), max_size)
    return compressed
