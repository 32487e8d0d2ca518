"""Size-bounded re-encoding of case videos for durable storage."""

import logging
from collections.abc import Sequence
from pathlib import Path

from app.constants import (
    COMPRESSION_FINAL_MAX_HEIGHT,
    COMPRESSION_LADDER,
    DEFAULT_MAX_STORED_SIZE_MB,
)
from app.media import tools
from app.media.tools import ToolNotFoundError
from app.media.workspace import read_output, scratch_workspace, write_input
from app.models.media import VideoBlob

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class CompressionError(Exception):
    """Raised when a video cannot be brought under the storage size budget."""

    pass


class EncoderError(Exception):
    """Raised when the encoder is missing or exits with an error."""

    pass


def build_encode_args(
    input_path: Path,
    output_path: Path,
    crf: int,
    preset: str,
    max_height: int | None = None,
) -> list[str]:
    """ffmpeg arguments for one H.264 rung of the compression ladder."""
    args = ["-hide_banner", "-loglevel", "error", "-i", str(input_path)]
    if max_height is not None:
        # -2 keeps the width even, which libx264 requires
        args += ["-vf", f"scale=-2:'min({max_height},ih)'"]
    args += [
        "-c:v",
        "libx264",
        "-crf",
        str(crf),
        "-preset",
        preset,
        "-pix_fmt",
        "yuv420p",
        "-movflags",
        "+faststart",
        "-y",
        str(output_path),
    ]
    return args


async def compress(
    video: VideoBlob,
    max_size_mb: float = DEFAULT_MAX_STORED_SIZE_MB,
    ladder: Sequence[tuple[int, str]] = COMPRESSION_LADDER,
) -> VideoBlob:
    """
    Re-encode a video until it fits within max_size_mb.

    Rungs are tried from highest to lowest quality and the first output under
    budget is returned. If the original upload is already over budget, the
    final rung also caps the height at COMPRESSION_FINAL_MAX_HEIGHT.

    This is real encoding work and can take a long time; it only runs after
    analysis has succeeded.

    Args:
        video: Original upload
        max_size_mb: Size ceiling for the stored copy
        ladder: (crf, preset) pairs in descending quality order

    Returns:
        Compressed mp4 VideoBlob no larger than max_size_mb

    Raises:
        CompressionError: If every rung is still over budget
        EncoderError: If ffmpeg is missing or a rung fails to encode
    """
    if not ladder:
        raise ValueError("Compression ladder must have at least one rung")

    input_over_budget = video.size_mb > max_size_mb
    output_name = f"{Path(video.filename).stem or 'video'}.mp4"
    last_rung = len(ladder) - 1
    size_mb = 0.0

    async with scratch_workspace("ct-compress-") as workspace:
        input_path = await write_input(workspace, video)

        for rung, (crf, preset) in enumerate(ladder):
            max_height = (
                COMPRESSION_FINAL_MAX_HEIGHT if rung == last_rung and input_over_budget else None
            )
            output_path = workspace / f"output-{rung}.mp4"
            args = build_encode_args(input_path, output_path, crf, preset, max_height)

            try:
                result = await tools.run_tool("ffmpeg", *args)
            except ToolNotFoundError as e:
                raise EncoderError(str(e)) from e

            if not result.ok or not output_path.exists():
                raise EncoderError(
                    f"Video encoding failed (crf {crf}): {result.error_text}"
                )

            size_mb = output_path.stat().st_size / BYTES_PER_MB
            logger.info(
                "Compression rung %d/%d (crf %d, %s%s): %.2fMB -> %.2fMB",
                rung + 1,
                len(ladder),
                crf,
                preset,
                f", max height {max_height}" if max_height else "",
                video.size_mb,
                size_mb,
            )

            if size_mb <= max_size_mb:
                return VideoBlob(data=await read_output(output_path), filename=output_name)

            output_path.unlink()

    raise CompressionError(
        f"Compressed video ({size_mb:.2f}MB) still exceeds the {max_size_mb:g}MB limit "
        f"after {len(ladder)} attempts. Please upload a shorter clip."
    )
