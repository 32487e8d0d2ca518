"""Video analysis models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class AnalysisStrategyName(str, Enum):
    NATIVE = "native"
    FRAMES = "frames"


class AnalysisMode(str, Enum):
    """How the selector chooses between native video and frame extraction."""

    NATIVE = "native"
    LEGACY = "legacy"
    NATIVE_WITH_FALLBACK = "native_with_fallback"


@dataclass(frozen=True)
class AnalysisResult:
    explanation: str
    thumbnail: str
    strategy: AnalysisStrategyName


@dataclass(frozen=True)
class StreamPreparation:
    """Everything needed to open a streaming native analysis."""

    video_base64: str
    mime_type: str
    prompt: str


class VideoInfoResponse(BaseModel):
    """Probe result for an uploaded video."""

    duration_seconds: float = Field(..., ge=0)
    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)
    fps: float = Field(..., ge=0)


class VideoAnalysisResponse(BaseModel):
    """Response from the video analysis endpoint."""

    explanation: str
    title: str
    category: str
    thumbnail: str = Field(..., description="Thumbnail frame as a data URL")
    strategy: AnalysisStrategyName = Field(
        ..., description="Which analysis path produced the explanation"
    )
    video_key: str = Field(..., description="Object storage key of the compressed video")
    video_size_mb: float
    video_info: VideoInfoResponse | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "explanation": "1. OVERVIEW: Axial contrast-enhanced CT ...",
                    "title": "Staghorn Calculus Left Kidney",
                    "category": "Stones",
                    "thumbnail": "data:image/jpeg;base64,/9j/4AAQ...",
                    "strategy": "native",
                    "video_key": "cases/videos/3f1c2b1e-ct-scroll.mp4",
                    "video_size_mb": 12.4,
                    "video_info": {
                        "duration_seconds": 12.0,
                        "width": 1920,
                        "height": 1080,
                        "fps": 30.0,
                    },
                }
            ]
        }
    }
