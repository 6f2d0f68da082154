from __future__ import annotations

from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request
from starlette.types import Message, Receive

from tubely.core.errors import UploadTooLargeError, ValidationError


class BodyLimitExceeded(Exception):
    pass


def limit_receive(receive: Receive, max_bytes: int) -> Receive:
    """Wrap an ASGI receive channel so it fails once ``max_bytes`` have been read."""
    received = 0

    async def _receive() -> Message:
        nonlocal received
        message = await receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > max_bytes:
                raise BodyLimitExceeded(received)
        return message

    return _receive


class MultipartUploadSource:
    """Parses a single file field out of a multipart request, on demand.

    Parsing is deferred until ``open_part`` so that callers can authorise the
    request first. The body is read through a hard byte ceiling and a
    declared ``Content-Length`` above it is rejected without reading at all.
    """

    def __init__(self, request: Request, *, field: str = "video", max_bytes: int):
        self.request = request
        self.field = field
        self.max_bytes = max_bytes
        self._form: FormData | None = None

    def _reject_declared_length(self) -> None:
        declared = self.request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise UploadTooLargeError(message=f"Upload exceeds {self.max_bytes} bytes")

    async def open_part(self) -> UploadFile:
        self._reject_declared_length()
        limited = Request(self.request.scope, receive=limit_receive(self.request.receive, self.max_bytes))
        # Starlette spools the part to its own temp file; the ceiling bounds that copy too
        try:
            self._form = await limited.form(max_files=1)
        except BodyLimitExceeded as exc:
            raise UploadTooLargeError(message=f"Upload exceeds {self.max_bytes} bytes") from exc
        except (MultiPartException, HTTPException) as exc:
            raise ValidationError("invalid_multipart", "Error parsing form") from exc

        part = self._form.get(self.field)
        if not isinstance(part, UploadFile):
            raise ValidationError("missing_video_file", f"Missing {self.field} file")
        return part

    async def close(self) -> None:
        if self._form is not None:
            await self._form.close()


__all__ = ["BodyLimitExceeded", "MultipartUploadSource", "limit_receive"]
