"""Thin async wrapper around the ffmpeg/ffprobe command-line tools."""

import asyncio
import logging
import shutil
from typing import NamedTuple

logger = logging.getLogger(__name__)


class ToolNotFoundError(Exception):
    """Raised when an external media tool is not on PATH."""

    pass


class ToolResult(NamedTuple):
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_text(self) -> str:
        return self.stderr.decode(errors="replace").strip() or "Unknown error"


def find_tool(name: str) -> str:
    path = shutil.which(name)
    if not path:
        raise ToolNotFoundError(f"{name} not found in PATH")
    return path


async def run_tool(name: str, *args: str) -> ToolResult:
    """
    Run ffmpeg or ffprobe and wait for it to finish.

    If the awaiting task is cancelled the child process is killed before the
    cancellation propagates.

    Args:
        name: Executable name ("ffmpeg" or "ffprobe")
        *args: Command-line arguments

    Returns:
        ToolResult with return code and captured output

    Raises:
        ToolNotFoundError: If the executable is not installed
    """
    executable = find_tool(name)
    logger.debug("Running %s %s", name, " ".join(args))

    process = await asyncio.create_subprocess_exec(
        executable,
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    return ToolResult(process.returncode, stdout, stderr)
