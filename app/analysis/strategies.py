"""The two CT video analysis strategies: native video and frame extraction."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from app.ai.gemini import GeminiVisionClient, InlineMedia
from app.analysis.prompts import build_frame_prompt, build_video_prompt
from app.constants import (
    FRAME_SEQUENCE_COUNT,
    MAX_INLINE_VIDEO_SIZE_MB,
    THUMBNAIL_POSITION,
    THUMBNAIL_SEQUENCE_INDEX_CAP,
)
from app.media import frames as frame_sampler
from app.models.analysis import AnalysisResult, AnalysisStrategyName, StreamPreparation
from app.models.media import VideoBlob

logger = logging.getLogger(__name__)


class VideoAnalysisError(Exception):
    """Raised when a video cannot be analyzed under the configured mode."""

    pass


class VideoAnalysisStrategy(ABC):
    """One way of turning a CT video into a teaching explanation."""

    name: AnalysisStrategyName

    def __init__(self, vision: GeminiVisionClient):
        self.vision = vision

    @abstractmethod
    def can_handle(self, size_bytes: int) -> bool:
        """Whether a payload of this size is eligible for the strategy."""

    @abstractmethod
    async def analyze(
        self, video: VideoBlob, attending_prompt: str | None = None
    ) -> AnalysisResult:
        """Produce explanation + thumbnail for the video."""


class NativeVideoStrategy(VideoAnalysisStrategy):
    """Send the whole video inline; thumbnail is a separate single-frame grab."""

    name = AnalysisStrategyName.NATIVE

    def __init__(
        self,
        vision: GeminiVisionClient,
        max_inline_size_mb: float = MAX_INLINE_VIDEO_SIZE_MB,
        thumbnail_position: float = THUMBNAIL_POSITION,
    ):
        super().__init__(vision)
        self.max_inline_size_mb = max_inline_size_mb
        self.thumbnail_position = thumbnail_position

    def can_handle(self, size_bytes: int) -> bool:
        return size_bytes <= self.max_inline_size_mb * 1024 * 1024

    def prepare(self, video: VideoBlob, attending_prompt: str | None = None) -> StreamPreparation:
        """
        Encode the video and build the prompt for an inline request.

        Raises:
            VideoAnalysisError: If the video exceeds the inline payload cap
        """
        if not self.can_handle(video.size_bytes):
            raise VideoAnalysisError(
                f"Video too large for native analysis "
                f"({video.size_mb:.2f}MB > {self.max_inline_size_mb:g}MB)"
            )
        return StreamPreparation(
            video_base64=video.to_base64(),
            mime_type=video.mime_type,
            prompt=build_video_prompt(attending_prompt),
        )

    async def thumbnail(self, video: VideoBlob) -> str:
        frame = await frame_sampler.sample_single(video, self.thumbnail_position)
        return frame.data_url()

    async def analyze(
        self, video: VideoBlob, attending_prompt: str | None = None
    ) -> AnalysisResult:
        logger.info("Native video analysis: %s (%.2fMB)", video.filename, video.size_mb)
        request = self.prepare(video, attending_prompt)

        explanation = await self.vision.analyze_video_inline(
            request.prompt, request.video_base64, request.mime_type
        )
        thumbnail = await self.thumbnail(video)

        logger.info("Native video analysis complete: %s", video.filename)
        return AnalysisResult(explanation=explanation, thumbnail=thumbnail, strategy=self.name)


class FrameExtractionStrategy(VideoAnalysisStrategy):
    """Sample evenly spaced stills and send them as an ordered image sequence."""

    name = AnalysisStrategyName.FRAMES

    def __init__(self, vision: GeminiVisionClient, frame_count: int = FRAME_SEQUENCE_COUNT):
        super().__init__(vision)
        self.frame_count = frame_count

    def can_handle(self, size_bytes: int) -> bool:
        return True

    async def analyze(
        self, video: VideoBlob, attending_prompt: str | None = None
    ) -> AnalysisResult:
        logger.info("Frame extraction analysis: %s, %d frames", video.filename, self.frame_count)
        frames = await frame_sampler.sample_sequence(video, self.frame_count)

        prompt = build_frame_prompt(len(frames), attending_prompt)
        explanation = await self.vision.analyze_images(
            prompt, [InlineMedia(frame.image_base64, frame.mime_type) for frame in frames]
        )

        # Reuse an already-sampled frame rather than extracting again
        thumbnail_frame = frames[min(THUMBNAIL_SEQUENCE_INDEX_CAP, len(frames) // 2)]

        logger.info("Frame extraction analysis complete: %s", video.filename)
        return AnalysisResult(
            explanation=explanation,
            thumbnail=thumbnail_frame.data_url(),
            strategy=self.name,
        )
