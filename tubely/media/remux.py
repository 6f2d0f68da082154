from __future__ import annotations

from pathlib import Path
from typing import Protocol

from tubely.core.logging import get_logger

from .errors import MediaFailure, RemuxError
from .tools import ToolInvocationError, run_tool

OUTPUT_SUFFIX = ".processing"


class StreamRemuxer(Protocol):
    async def remux(self, path: Path) -> Path: ...


def faststart_output_path(path: Path) -> Path:
    return path.with_name(path.name + OUTPUT_SUFFIX)


class FFmpegRemuxer:
    """Moves the MP4 index (moov atom) to the front without re-encoding.

    The output is written next to the input as ``<input>.processing``. The
    input is never touched; the caller owns both files.
    """

    def __init__(self, binary: str = "ffmpeg", *, timeout_s: float | None = None):
        self.binary = binary
        self.timeout_s = timeout_s
        self.logger = get_logger(component="ffmpeg_remux")

    def command(self, source: Path, target: Path) -> list[str]:
        return [
            self.binary,
            "-nostdin",
            "-v",
            "error",
            "-y",
            "-i",
            str(source),
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            str(target),
        ]

    async def remux(self, path: Path) -> Path:
        target = faststart_output_path(path)
        succeeded = False
        try:
            await run_tool(self.command(path, target), timeout_s=self.timeout_s)
            succeeded = True
        except ToolInvocationError as exc:
            self.logger.error("ffmpeg_remux_failed", path=str(path), returncode=exc.returncode, stderr=exc.stderr)
            raise RemuxError(MediaFailure.tool_failure, "ffmpeg remux failed", stderr=exc.stderr) from exc
        finally:
            if not succeeded:
                target.unlink(missing_ok=True)

        self.logger.info("ffmpeg_remux_completed", path=str(path), output=str(target))
        return target


__all__ = ["StreamRemuxer", "FFmpegRemuxer", "faststart_output_path", "OUTPUT_SUFFIX"]
