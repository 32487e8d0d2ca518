"""Per-call scratch directories for external tool invocations.

Video payloads can be tens of megabytes, so file writes, reads and removal
run in a worker thread rather than on the event loop.
"""

import asyncio
import base64
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from app.constants import SCRATCH_DIR
from app.models.media import VideoBlob


@asynccontextmanager
async def scratch_workspace(prefix: str) -> AsyncIterator[Path]:
    """
    Create a uniquely named temporary directory and remove it on exit.

    The directory is deleted whether the body returns, raises, or is cancelled,
    so concurrent calls never share or leak files.

    Args:
        prefix: Directory name prefix (e.g. "ct-frames-")

    Yields:
        Path to the empty scratch directory
    """
    Path(SCRATCH_DIR).mkdir(parents=True, exist_ok=True)
    workspace = Path(tempfile.mkdtemp(prefix=prefix, dir=SCRATCH_DIR))
    try:
        yield workspace
    finally:
        # The thread finishes the removal even if this await is cancelled
        await asyncio.to_thread(shutil.rmtree, workspace, ignore_errors=True)


async def write_input(workspace: Path, video: VideoBlob) -> Path:
    """Write the video bytes into the workspace, keeping the container extension."""
    input_path = workspace / f"input{video.suffix}"
    await asyncio.to_thread(input_path.write_bytes, video.data)
    return input_path


async def read_output(path: Path) -> bytes:
    return await asyncio.to_thread(path.read_bytes)


async def read_base64(path: Path) -> str:
    """Read a tool output file as ASCII base64."""
    data = await read_output(path)
    return base64.b64encode(data).decode("ascii")
