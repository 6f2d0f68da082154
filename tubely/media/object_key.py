from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass
from typing import Callable

from tubely.core.errors import KeyGenerationError

from .aspect import AspectClass

KEY_ENTROPY_BYTES = 32
VIDEO_EXTENSION = ".mp4"

TokenSource = Callable[[int], bytes]


@dataclass(frozen=True, slots=True)
class ObjectKey:
    """Object store key of the form ``<aspect>/<random>.mp4``.

    The prefix only groups objects for humans browsing the bucket; it is not
    an access boundary.
    """

    prefix: AspectClass
    basename: str
    extension: str = VIDEO_EXTENSION

    def __str__(self) -> str:
        return f"{self.prefix.value}/{self.basename}{self.extension}"


def build_object_key(aspect: AspectClass, *, token_source: TokenSource = secrets.token_bytes) -> ObjectKey:
    try:
        raw = token_source(KEY_ENTROPY_BYTES)
    except (OSError, NotImplementedError) as exc:
        raise KeyGenerationError(message="Random source unavailable") from exc
    basename = base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
    return ObjectKey(prefix=aspect, basename=basename)


__all__ = ["ObjectKey", "build_object_key", "KEY_ENTROPY_BYTES", "VIDEO_EXTENSION"]
