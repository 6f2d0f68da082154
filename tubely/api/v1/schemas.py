from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from tubely.services.signing import SignedVideo


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    version: Optional[str] = None
    storage_backend: Optional[str] = None
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EnvCheckResponse(BaseModel):
    ffmpeg: bool
    ffprobe: bool


class VideoCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, json_schema_extra={"example": "Boot.dev promo"})
    description: Optional[str] = Field(default=None, json_schema_extra={"example": "Cut for socials"})


class VideoResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = Field(default=None, description="Signed, short-lived URL for the uploaded video.")
    video_url_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_signed(cls, signed: SignedVideo) -> "VideoResponse":
        record = signed.record
        return cls(
            id=record.id,
            user_id=record.owner_id,
            title=record.title,
            description=record.description,
            thumbnail_url=record.thumbnail_url,
            video_url=signed.video_url,
            video_url_expires_at=signed.expires_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[Any] = None


__all__ = [
    "HealthResponse",
    "EnvCheckResponse",
    "VideoCreateRequest",
    "VideoResponse",
    "ErrorResponse",
]
