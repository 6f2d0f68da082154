from __future__ import annotations

from uuid import UUID

from tubely.core.config import Settings
from tubely.core.errors import AuthorizationError, MetadataError, NotFoundError, ValidationError
from tubely.core.logging import get_logger
from tubely.core.storage import Storage
from tubely.db.repository import RecordStoreError, SqlVideoRepository, VideoRepository
from tubely.domain import VideoRecord

from .signing import SignedVideo, sign_video


def parse_video_id(raw: str) -> str:
    try:
        return str(UUID(raw))
    except (TypeError, ValueError) as exc:
        raise ValidationError("invalid_video_id", "Invalid video ID") from exc


async def load_owned_record(repository: VideoRepository, video_id: str, principal_id: str) -> VideoRecord:
    """Load a record and fail closed unless ``principal_id`` owns it."""
    normalised = parse_video_id(video_id)
    try:
        record = await repository.get(normalised)
    except RecordStoreError as exc:
        raise MetadataError(message="Failed to load video") from exc
    if record is None:
        raise NotFoundError("video_not_found", "Video not found")
    if not record.is_owned_by(principal_id):
        raise AuthorizationError("not_video_owner", "You do not own this video")
    return record


class VideoService:
    """Record creation and the signed read paths."""

    def __init__(self, settings: Settings, repository: SqlVideoRepository, storage: Storage):
        self.settings = settings
        self.repository = repository
        self.storage = storage
        self.logger = get_logger(component="video_service")

    async def create_video(self, *, owner_id: str, title: str, description: str | None) -> VideoRecord:
        try:
            record = await self.repository.create(owner_id=owner_id, title=title, description=description)
        except RecordStoreError as exc:
            raise MetadataError(message="Failed to create video") from exc
        self.logger.info("video_created", video_id=record.id, owner_id=owner_id)
        return record

    async def get_video(self, *, video_id: str, principal_id: str) -> SignedVideo:
        record = await load_owned_record(self.repository, video_id, principal_id)
        return await self.sign(record)

    async def list_videos(self, *, principal_id: str) -> list[SignedVideo]:
        try:
            records = await self.repository.list_for_owner(principal_id)
        except RecordStoreError as exc:
            raise MetadataError(message="Failed to list videos") from exc
        return [await self.sign(record) for record in records]

    async def sign(self, record: VideoRecord) -> SignedVideo:
        return await sign_video(record, self.storage, ttl_s=self.settings.signed_url_ttl_s)


__all__ = ["VideoService", "load_owned_record", "parse_video_id"]
