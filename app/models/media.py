"""Media value types shared by the prober, sampler, transcoder and analyzers."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from app.constants import DEFAULT_VIDEO_MIME_TYPE, VIDEO_MIME_TYPES

ImageMimeType = Literal["image/jpeg", "image/png"]


def video_mime_type(filename: str) -> str:
    """Guess the container MIME type from a filename extension."""
    return VIDEO_MIME_TYPES.get(Path(filename).suffix.lower(), DEFAULT_VIDEO_MIME_TYPE)


@dataclass(frozen=True)
class VideoBlob:
    """Uploaded video bytes plus the declared filename (container hint)."""

    data: bytes
    filename: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def size_mb(self) -> float:
        return len(self.data) / (1024 * 1024)

    @property
    def mime_type(self) -> str:
        return video_mime_type(self.filename)

    @property
    def suffix(self) -> str:
        return Path(self.filename).suffix.lower() or ".mp4"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class VideoMetadata:
    duration_seconds: float
    width_px: int
    height_px: int
    fps: float


@dataclass(frozen=True)
class ExtractedFrame:
    """A still image pulled from a video.

    ordinal_index is 0 for single-frame (thumbnail) extraction and 1..N for
    sequence extraction, in playback order.
    """

    ordinal_index: int
    image_base64: str
    mime_type: ImageMimeType

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.image_base64}"
