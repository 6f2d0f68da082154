from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from tubely.core.errors import SigningError
from tubely.core.logging import get_logger
from tubely.core.storage import ObjectStoreError, Storage
from tubely.domain import VideoRecord

DEFAULT_SIGNED_URL_TTL_S = 15 * 60

logger = get_logger(component="signing")


@dataclass(slots=True)
class SignedVideo:
    """A record paired with a short-lived fetch URL. Never persisted."""

    record: VideoRecord
    video_url: Optional[str] = None
    expires_at: Optional[datetime] = None


async def sign_video(record: VideoRecord, storage: Storage, *, ttl_s: int = DEFAULT_SIGNED_URL_TTL_S) -> SignedVideo:
    """Attach a time-boxed URL for the record's uploaded media, if any.

    A record without media (no locator, or an empty one) is returned without
    a URL; that is the normal state of a freshly created video.

    Raises:
        SigningError: If the storage backend cannot sign the locator.
    """
    locator = record.locator
    if locator is None or not locator.bucket or not locator.key:
        return SignedVideo(record=record)

    try:
        presigned = await storage.presign_get(locator.bucket, locator.key, expires_s=ttl_s)
    except ObjectStoreError as exc:
        logger.error("presign_failed", video_id=record.id, bucket=locator.bucket, key=locator.key, error=str(exc))
        raise SigningError(message="Failed to generate video URL") from exc
    return SignedVideo(record=record, video_url=presigned.url, expires_at=presigned.expires_at)


__all__ = ["SignedVideo", "sign_video", "DEFAULT_SIGNED_URL_TTL_S"]
