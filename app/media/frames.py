"""Still-frame sampling from uploaded videos.

Two entry points:
- sample_sequence: N evenly time-spaced frames in playback order (ordinals 1..N)
- sample_single: one jpeg at a fraction of the duration (ordinal 0, thumbnails)
"""

import logging
import math
from pathlib import Path
from typing import Literal

from app.constants import FRAME_JPEG_QUALITY, FRAME_SEQUENCE_COUNT, THUMBNAIL_POSITION
from app.media import tools
from app.media.tools import ToolNotFoundError
from app.media.workspace import read_base64, scratch_workspace, write_input
from app.models.media import ExtractedFrame, VideoBlob

logger = logging.getLogger(__name__)

FrameFormat = Literal["jpeg", "png"]

_MIME_TYPES = {"jpeg": "image/jpeg", "png": "image/png"}


class ExtractionError(Exception):
    """Raised when frames cannot be extracted from a video."""

    pass


async def read_duration(input_path: Path) -> float:
    """
    Read the container duration of a file already in a scratch workspace.

    Raises:
        ExtractionError: If ffprobe fails or the duration is zero, negative or unparseable
    """
    try:
        result = await tools.run_tool(
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(input_path),
        )
    except ToolNotFoundError as e:
        raise ExtractionError(str(e)) from e

    if not result.ok:
        raise ExtractionError(f"Could not determine video duration: {result.error_text}")

    duration_str = result.stdout.decode(errors="replace").strip()
    try:
        duration = float(duration_str)
    except ValueError as e:
        raise ExtractionError(f"Could not determine video duration: {duration_str!r}") from e

    if not math.isfinite(duration) or duration <= 0:
        raise ExtractionError(f"Could not determine video duration: {duration_str!r}")
    return duration


def _frame_number(path: Path) -> int:
    return int(path.stem.rsplit("-", 1)[-1])


async def sample_sequence(
    video: VideoBlob,
    frame_count: int = FRAME_SEQUENCE_COUNT,
    output_format: FrameFormat = "jpeg",
) -> list[ExtractedFrame]:
    """
    Extract frame_count evenly spaced frames across the whole video.

    The sampling rate is frame_count / duration, so for 10 frames from a
    10 second clip the frames are one second apart.

    Args:
        video: Uploaded video
        frame_count: Number of frames to sample
        output_format: "jpeg" (default) or "png"

    Returns:
        Frames in playback order with ordinal_index 1..len

    Raises:
        ExtractionError: If duration is invalid, ffmpeg fails, or no frames are produced
    """
    if frame_count < 1:
        raise ValueError(f"frame_count must be at least 1, got {frame_count}")
    if output_format not in _MIME_TYPES:
        raise ValueError(f"Unsupported frame format: {output_format}")

    async with scratch_workspace("ct-frames-") as workspace:
        input_path = await write_input(workspace, video)
        duration = await read_duration(input_path)
        fps = frame_count / duration

        frame_pattern = workspace / f"frame-%03d.{output_format}"
        args = ["-hide_banner", "-loglevel", "error", "-i", str(input_path), "-vf", f"fps={fps}"]
        if output_format == "jpeg":
            args += ["-q:v", str(FRAME_JPEG_QUALITY)]
        args += ["-frames:v", str(frame_count), str(frame_pattern)]

        logger.info(
            "Sampling %d frames from %s (%.2fs, %.4f fps)", frame_count, video.filename, duration, fps
        )
        try:
            result = await tools.run_tool("ffmpeg", *args)
        except ToolNotFoundError as e:
            raise ExtractionError(str(e)) from e

        if not result.ok:
            raise ExtractionError(
                f"ffmpeg exited with code {result.returncode}: {result.error_text}"
            )

        frame_files = sorted(workspace.glob(f"frame-*.{output_format}"), key=_frame_number)
        if not frame_files:
            raise ExtractionError(f"No frames extracted from {video.filename}")

        mime_type = _MIME_TYPES[output_format]
        frames = [
            ExtractedFrame(
                ordinal_index=index,
                image_base64=await read_base64(path),
                mime_type=mime_type,
            )
            for index, path in enumerate(frame_files, start=1)
        ]

    logger.info("Extracted %d frames from %s", len(frames), video.filename)
    return frames


async def sample_single(video: VideoBlob, position: float = THUMBNAIL_POSITION) -> ExtractedFrame:
    """
    Extract one jpeg frame at position * duration.

    Args:
        video: Uploaded video
        position: Fraction of the duration in [0, 1] (default 0.3)

    Returns:
        ExtractedFrame with ordinal_index 0

    Raises:
        ExtractionError: If duration is invalid, the position is out of range,
            or ffmpeg produces no frame (seek past the end of the media)
    """
    if not 0.0 <= position <= 1.0:
        raise ExtractionError(f"Frame position must be within [0, 1], got {position}")

    async with scratch_workspace("ct-thumb-") as workspace:
        input_path = await write_input(workspace, video)
        duration = await read_duration(input_path)
        seek_time = duration * position
        frame_path = workspace / "thumbnail.jpeg"

        try:
            result = await tools.run_tool(
                "ffmpeg",
                "-hide_banner",
                "-loglevel",
                "error",
                "-i",
                str(input_path),
                "-ss",
                f"{seek_time:.3f}",
                "-frames:v",
                "1",
                "-q:v",
                str(FRAME_JPEG_QUALITY),
                str(frame_path),
            )
        except ToolNotFoundError as e:
            raise ExtractionError(str(e)) from e

        if not result.ok:
            raise ExtractionError(
                f"ffmpeg exited with code {result.returncode}: {result.error_text}"
            )
        if not frame_path.exists():
            raise ExtractionError(
                f"No frame at {seek_time:.2f}s in {video.filename} (duration {duration:.2f}s)"
            )

        frame = ExtractedFrame(
            ordinal_index=0,
            image_base64=await read_base64(frame_path),
            mime_type="image/jpeg",
        )

    logger.debug("Extracted thumbnail from %s at %.2fs", video.filename, seek_time)
    return frame
