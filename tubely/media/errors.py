from __future__ import annotations

import enum


class MediaFailure(str, enum.Enum):
    no_video_stream = "no_video_stream"
    tool_failure = "tool_failure"


class MediaToolError(Exception):
    """Base for probe/remux failures.

    ``stderr`` holds whatever the external tool printed; it is meant for logs
    and must not be echoed back to API clients.
    """

    def __init__(self, reason: MediaFailure, message: str, *, stderr: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.stderr = stderr


class ProbeError(MediaToolError):
    pass


class RemuxError(MediaToolError):
    pass


__all__ = ["MediaFailure", "MediaToolError", "ProbeError", "RemuxError"]
