from __future__ import annotations

from typing import Optional, Protocol
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.logging import get_logger
from tubely.domain import VideoLocator, VideoRecord

from .models import Video


class RecordStoreError(Exception):
    """The metadata store could not complete a read or write."""


class VideoRepository(Protocol):
    async def get(self, video_id: str) -> Optional[VideoRecord]: ...

    async def update(self, record: VideoRecord) -> VideoRecord: ...


def _to_record(row: Video) -> VideoRecord:
    locator = None
    if row.video_bucket is not None and row.video_key is not None:
        locator = VideoLocator(bucket=row.video_bucket, key=row.video_key)
    return VideoRecord(
        id=row.id,
        owner_id=row.user_id,
        title=row.title,
        description=row.description,
        thumbnail_url=row.thumbnail_url,
        locator=locator,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlVideoRepository:
    """Metadata store for video records backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = get_logger(component="video_repository")

    async def create(self, *, owner_id: str, title: str, description: str | None = None) -> VideoRecord:
        row = Video(id=str(uuid4()), user_id=owner_id, title=title, description=description)
        self.session.add(row)
        try:
            await self.session.commit()
            await self.session.refresh(row)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise RecordStoreError("failed to create video") from exc
        return _to_record(row)

    async def get(self, video_id: str) -> Optional[VideoRecord]:
        try:
            row = await self.session.get(Video, video_id)
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"failed to load video {video_id}") from exc
        return _to_record(row) if row else None

    async def list_for_owner(self, owner_id: str) -> list[VideoRecord]:
        stmt = select(Video).where(Video.user_id == owner_id).order_by(Video.created_at.desc(), Video.id)
        try:
            rows = (await self.session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"failed to list videos for {owner_id}") from exc
        return [_to_record(row) for row in rows]

    async def update(self, record: VideoRecord) -> VideoRecord:
        try:
            row = await self.session.get(Video, record.id)
            if row is None:
                raise RecordStoreError(f"video {record.id} no longer exists")
            row.title = record.title
            row.description = record.description
            row.thumbnail_url = record.thumbnail_url
            row.video_bucket = record.locator.bucket if record.locator else None
            row.video_key = record.locator.key if record.locator else None
            await self.session.commit()
            await self.session.refresh(row)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise RecordStoreError(f"failed to update video {record.id}") from exc
        self.logger.info("video_updated", video_id=record.id)
        return _to_record(row)


__all__ = ["RecordStoreError", "VideoRepository", "SqlVideoRepository"]
