"""Chooses and runs a video analysis strategy for the configured mode.

| Mode                 | Over inline cap          | Within cap                      |
|----------------------|--------------------------|---------------------------------|
| legacy               | frames                   | frames                          |
| native               | VideoAnalysisError       | native                          |
| native_with_fallback | frames                   | native, frames if native raises |
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from app.ai.gemini import GeminiVisionClient
from app.analysis.strategies import (
    FrameExtractionStrategy,
    NativeVideoStrategy,
    VideoAnalysisError,
)
from app.models.analysis import AnalysisMode, AnalysisResult, StreamPreparation
from app.models.media import VideoBlob
from app.settings import Settings

logger = logging.getLogger(__name__)


class VideoAnalyzer:
    """
    Strategy selector for CT video uploads.

    The mode is fixed at construction; nothing here reads the environment.

    Example:
        >>> analyzer = VideoAnalyzer.from_settings(get_settings())
        >>> result = await analyzer.analyze(VideoBlob(data, "scroll.mp4"))
        >>> result.strategy
        <AnalysisStrategyName.NATIVE: 'native'>
    """

    def __init__(
        self,
        mode: AnalysisMode,
        native: NativeVideoStrategy,
        frames: FrameExtractionStrategy,
    ):
        self.mode = mode
        self.native = native
        self.frames = frames

    @classmethod
    def from_settings(
        cls, settings: Settings, vision: GeminiVisionClient | None = None
    ) -> VideoAnalyzer:
        vision = vision or GeminiVisionClient.from_settings(settings)
        return cls(
            mode=settings.analysis_mode,
            native=NativeVideoStrategy(vision),
            frames=FrameExtractionStrategy(vision),
        )

    async def analyze(
        self, video: VideoBlob, attending_prompt: str | None = None
    ) -> AnalysisResult:
        """
        Analyze a CT video according to the configured mode.

        Only a native-strategy failure in native_with_fallback mode is caught
        (and retried with frame extraction). Frame extraction failures always
        propagate.

        Raises:
            VideoAnalysisError: In native mode when the video exceeds the inline cap
            InferenceError, ExtractionError: From the strategy that ran last
        """
        logger.info(
            "Video analysis mode: %s, video size: %.2fMB", self.mode.value, video.size_mb
        )

        if self.mode is AnalysisMode.LEGACY:
            return await self.frames.analyze(video, attending_prompt)

        if self.mode is AnalysisMode.NATIVE:
            if not self.native.can_handle(video.size_bytes):
                raise VideoAnalysisError(
                    f"Video too large for native analysis ({video.size_mb:.2f}MB). "
                    "Set VIDEO_ANALYSIS_MODE=native_with_fallback to enable fallback."
                )
            return await self.native.analyze(video, attending_prompt)

        if self.native.can_handle(video.size_bytes):
            try:
                return await self.native.analyze(video, attending_prompt)
            except Exception:
                logger.warning(
                    "Native video analysis failed for %s, falling back to frame extraction",
                    video.filename,
                    exc_info=True,
                )
        else:
            logger.info(
                "Video too large for native analysis (%.2fMB > %gMB), using frame extraction",
                video.size_mb,
                self.native.max_inline_size_mb,
            )

        return await self.frames.analyze(video, attending_prompt)

    def prepare_streaming(
        self, video: VideoBlob, attending_prompt: str | None = None
    ) -> StreamPreparation:
        """
        Validate and encode a video for streaming native analysis.

        Streaming has no frame-extraction counterpart, so it is refused in
        legacy mode and for videos over the inline cap.

        Raises:
            VideoAnalysisError: If streaming is not possible for this video/mode
        """
        if self.mode is AnalysisMode.LEGACY:
            raise VideoAnalysisError(
                "Streaming analysis needs native video analysis; "
                "VIDEO_ANALYSIS_MODE is set to legacy."
            )
        return self.native.prepare(video, attending_prompt)

    def stream(self, request: StreamPreparation) -> AsyncIterator[str]:
        """Text chunks for a prepared request, in the order generated."""
        return self.native.vision.stream_video_inline(
            request.prompt, request.video_base64, request.mime_type
        )

    async def streaming_thumbnail(self, video: VideoBlob) -> str:
        """Thumbnail for a streamed analysis (single frame, as in the native path)."""
        return await self.native.thumbnail(video)
