"""Video metadata probing via ffprobe."""

import json
import logging
import math
from typing import Any

from app.media import tools
from app.media.tools import ToolNotFoundError
from app.media.workspace import scratch_workspace, write_input
from app.models.media import VideoBlob, VideoMetadata

logger = logging.getLogger(__name__)

DEFAULT_FRAME_RATE = "30/1"


class ProbeError(Exception):
    """Raised when a video has no decodable stream or unreadable metadata."""

    pass


def parse_frame_rate(raw: str) -> float:
    """
    Parse an ffprobe frame rate ("30000/1001" or "25").

    Raises:
        ProbeError: If the rate is malformed or not positive
    """
    try:
        if "/" in raw:
            numerator, denominator = raw.split("/", 1)
            fps = float(numerator) / float(denominator)
        else:
            fps = float(raw)
    except (ValueError, ZeroDivisionError) as e:
        raise ProbeError(f"Invalid frame rate: {raw!r}") from e

    if not math.isfinite(fps) or fps <= 0:
        raise ProbeError(f"Invalid frame rate: {raw!r}")
    return fps


def parse_duration(raw: Any) -> float:
    """
    Parse an ffprobe duration value in seconds.

    Raises:
        ProbeError: If the value is missing, non-numeric, or not positive
    """
    try:
        duration = float(raw)
    except (TypeError, ValueError) as e:
        raise ProbeError(f"Could not parse video duration: {raw!r}") from e

    if not math.isfinite(duration) or duration <= 0:
        raise ProbeError(f"Invalid video duration: {raw!r} seconds")
    return duration


def parse_probe_output(stdout: bytes) -> VideoMetadata:
    """Build VideoMetadata from `ffprobe -of json` output."""
    try:
        info = json.loads(stdout.decode() or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProbeError(f"Unreadable ffprobe output: {e}") from e

    streams = info.get("streams") or []
    if not streams:
        raise ProbeError("No video stream found")
    stream = streams[0]

    # Some containers (webm, fragmented mp4) only report duration at format level
    raw_duration = stream.get("duration")
    if raw_duration in (None, "N/A"):
        raw_duration = (info.get("format") or {}).get("duration")

    return VideoMetadata(
        duration_seconds=parse_duration(raw_duration),
        width_px=int(stream.get("width") or 0),
        height_px=int(stream.get("height") or 0),
        fps=parse_frame_rate(stream.get("r_frame_rate") or DEFAULT_FRAME_RATE),
    )


async def probe(video: VideoBlob) -> VideoMetadata:
    """
    Determine duration, resolution and frame rate of a video.

    Args:
        video: Uploaded video

    Returns:
        VideoMetadata for the first video stream

    Raises:
        ProbeError: If ffprobe is missing, fails, or the video has no usable stream
    """
    async with scratch_workspace("ct-info-") as workspace:
        input_path = await write_input(workspace, video)
        try:
            result = await tools.run_tool(
                "ffprobe",
                "-v",
                "error",
                "-select_streams",
                "v:0",
                "-show_entries",
                "stream=width,height,r_frame_rate,duration:format=duration",
                "-of",
                "json",
                str(input_path),
            )
        except ToolNotFoundError as e:
            raise ProbeError(str(e)) from e

    if not result.ok:
        raise ProbeError(
            f"ffprobe returned code {result.returncode} for {video.filename}: {result.error_text}"
        )

    metadata = parse_probe_output(result.stdout)
    logger.info(
        "Probed %s: %.2fs %dx%d @ %.2f fps",
        video.filename,
        metadata.duration_seconds,
        metadata.width_px,
        metadata.height_px,
        metadata.fps,
    )
    return metadata
