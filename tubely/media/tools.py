from __future__ import annotations

import asyncio
import shutil
import subprocess
from dataclasses import dataclass
from typing import Sequence

from tubely.core.logging import get_logger

logger = get_logger(component="media_tools")


@dataclass(slots=True)
class ToolResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace").strip()


class ToolInvocationError(Exception):
    """The external tool could not be started, timed out, or exited non-zero."""

    def __init__(self, command: Sequence[str], message: str, *, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def run_tool(command: Sequence[str], *, timeout_s: float | None = None) -> ToolResult:
    """Run an external tool to completion and capture its output.

    The child is killed and reaped if the timeout elapses or the awaiting task
    is cancelled, so an aborted request never leaves a running ffmpeg behind.
    """
    logger.debug("tool_started", command=list(command))
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ToolInvocationError(command, f"failed to start {command[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        await _terminate(proc)
        raise ToolInvocationError(command, f"{command[0]} timed out after {timeout_s}s") from exc
    except asyncio.CancelledError:
        await asyncio.shield(_terminate(proc))
        logger.warning("tool_cancelled", command=list(command), pid=proc.pid)
        raise

    result = ToolResult(returncode=proc.returncode or 0, stdout=stdout, stderr=stderr)
    if proc.returncode != 0:
        raise ToolInvocationError(
            command,
            f"{command[0]} exited with status {proc.returncode}",
            returncode=proc.returncode,
            stderr=result.stderr_text,
        )
    return result


def binary_available(binary: str) -> bool:
    return shutil.which(binary) is not None


__all__ = ["ToolResult", "ToolInvocationError", "run_tool", "binary_available"]
