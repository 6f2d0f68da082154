from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from tubely.core.logging import get_logger

from .errors import MediaFailure, ProbeError
from .tools import ToolInvocationError, run_tool


@dataclass(frozen=True, slots=True)
class MediaGeometry:
    """Pixel dimensions of the first video stream of a file."""

    width: int
    height: int
    codec_name: Optional[str] = None


class MediaProber(Protocol):
    async def probe(self, path: Path) -> MediaGeometry: ...


def parse_probe_output(raw: Dict[str, Any]) -> MediaGeometry:
    """Extract the geometry of the first video stream from ffprobe JSON.

    Only the first stream typed ``video`` is considered; audio, subtitle and
    data streams, as well as any later video streams, are ignored.

    Args:
        raw: Decoded ``ffprobe -show_streams -print_format json`` output.

    Returns:
        The geometry of the selected stream.

    Raises:
        ProbeError: ``no_video_stream`` if no video stream carries a positive
            width and height, ``tool_failure`` if the output is not shaped
            like ffprobe JSON.
    """
    if not isinstance(raw, dict):
        raise ProbeError(MediaFailure.tool_failure, "unexpected ffprobe output")
    streams = raw.get("streams")
    if streams is None:
        streams = []
    if not isinstance(streams, list):
        raise ProbeError(MediaFailure.tool_failure, "unexpected ffprobe streams payload")
    for stream in streams:
        if not isinstance(stream, dict) or _stream_type(stream.get("codec_type")) != "video":
            continue
        width = _int_or_none(stream.get("width")) or 0
        height = _int_or_none(stream.get("height")) or 0
        if width <= 0 or height <= 0:
            break
        return MediaGeometry(width=width, height=height, codec_name=stream.get("codec_name"))
    raise ProbeError(MediaFailure.no_video_stream, "no video stream found")


def _stream_type(value: Any) -> str:
    if not isinstance(value, str):
        return "other"
    return value.lower()


def _int_or_none(value: Any) -> Optional[int]:
    if value in (None, "N/A", ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class FFprobeProber:
    """Reads stream geometry by shelling out to ffprobe."""

    def __init__(self, binary: str = "ffprobe", *, timeout_s: float | None = None):
        self.binary = binary
        self.timeout_s = timeout_s
        self.logger = get_logger(component="ffprobe")

    def command(self, path: Path) -> list[str]:
        return [
            self.binary,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            str(path),
        ]

    async def probe(self, path: Path) -> MediaGeometry:
        try:
            result = await run_tool(self.command(path), timeout_s=self.timeout_s)
        except ToolInvocationError as exc:
            self.logger.error("ffprobe_failed", path=str(path), returncode=exc.returncode, stderr=exc.stderr)
            raise ProbeError(MediaFailure.tool_failure, "ffprobe failed", stderr=exc.stderr) from exc

        try:
            raw = json.loads(result.stdout)
        except ValueError as exc:
            self.logger.error("ffprobe_output_unparseable", path=str(path), stderr=result.stderr_text)
            raise ProbeError(
                MediaFailure.tool_failure,
                "failed to parse ffprobe output",
                stderr=result.stderr_text,
            ) from exc

        geometry = parse_probe_output(raw)
        self.logger.info("ffprobe_geometry", path=str(path), width=geometry.width, height=geometry.height)
        return geometry


__all__ = ["MediaGeometry", "MediaProber", "FFprobeProber", "parse_probe_output"]
