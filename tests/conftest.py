import json
from pathlib import Path

import pytest

from app.media.tools import ToolResult


class FakeMediaTools:
    """
    Stand-in for app.media.tools.run_tool.

    ffprobe answers with canned output; ffmpeg writes whatever files the
    command line asks for (frame pattern, thumbnail, or encoded output).
    """

    def __init__(self):
        self.duration = "12.0"
        self.probe_info = {
            "streams": [
                {"width": 1920, "height": 1080, "r_frame_rate": "30/1", "duration": "12.000000"}
            ],
            "format": {"duration": "12.000000"},
        }
        self.ffprobe_returncode = 0
        self.ffmpeg_returncode = 0
        self.frames_written: int | None = None
        self.write_thumbnail = True
        self.encode_sizes: list[int] = []
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.workspaces: list[Path] = []

    def ffmpeg_calls(self) -> list[tuple[str, ...]]:
        return [args for name, args in self.calls if name == "ffmpeg"]

    async def __call__(self, name: str, *args: str) -> ToolResult:
        self.calls.append((name, args))
        output = Path(args[-1])
        self.workspaces.append(output.parent)

        if name == "ffprobe":
            if self.ffprobe_returncode:
                return ToolResult(self.ffprobe_returncode, b"", b"Invalid data found")
            if "json" in args:
                return ToolResult(0, json.dumps(self.probe_info).encode(), b"")
            return ToolResult(0, f"{self.duration}\n".encode(), b"")

        if self.ffmpeg_returncode:
            return ToolResult(self.ffmpeg_returncode, b"", b"Conversion failed!")

        if "%03d" in output.name:
            count = self.frames_written
            if count is None:
                count = int(args[args.index("-frames:v") + 1])
            for number in range(1, count + 1):
                (output.parent / (output.name % number)).write_bytes(f"frame-{number}".encode())
        elif output.name == "thumbnail.jpeg":
            if self.write_thumbnail:
                output.write_bytes(b"thumbnail")
        else:
            encode_index = len(self.ffmpeg_calls()) - 1
            output.write_bytes(b"\0" * self.encode_sizes[encode_index])

        return ToolResult(0, b"", b"")


@pytest.fixture
def fake_tools(monkeypatch) -> FakeMediaTools:
    fake = FakeMediaTools()
    monkeypatch.setattr("app.media.tools.run_tool", fake)
    return fake
