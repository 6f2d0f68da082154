from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tubely.core.auth import AuthContext, get_auth_context
from tubely.core.config import Settings, get_settings
from tubely.core.storage import Storage
from tubely.db.repository import SqlVideoRepository
from tubely.media import MediaProber, StreamRemuxer
from tubely.services.ingest_service import VideoIngestService
from tubely.services.video_service import VideoService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_storage(request: Request) -> Storage:
    storage: Storage = request.app.state.storage
    return storage


def get_prober(request: Request) -> MediaProber:
    return request.app.state.prober


def get_remuxer(request: Request) -> StreamRemuxer:
    return request.app.state.remuxer


def get_app_settings() -> Settings:
    return get_settings()


def get_video_repository(session: AsyncSession = Depends(get_session)) -> SqlVideoRepository:
    return SqlVideoRepository(session)


def get_video_service(
    repository: SqlVideoRepository = Depends(get_video_repository),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> VideoService:
    return VideoService(settings, repository, storage)


def get_ingest_service(
    repository: SqlVideoRepository = Depends(get_video_repository),
    storage: Storage = Depends(get_storage),
    prober: MediaProber = Depends(get_prober),
    remuxer: StreamRemuxer = Depends(get_remuxer),
    settings: Settings = Depends(get_app_settings),
) -> VideoIngestService:
    return VideoIngestService(settings, repository, storage, prober, remuxer)


AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]
VideoServiceDependency = Annotated[VideoService, Depends(get_video_service)]
IngestServiceDependency = Annotated[VideoIngestService, Depends(get_ingest_service)]


__all__ = [
    "get_session",
    "get_storage",
    "get_prober",
    "get_remuxer",
    "get_app_settings",
    "get_video_repository",
    "get_video_service",
    "get_ingest_service",
    "AuthDependency",
    "VideoServiceDependency",
    "IngestServiceDependency",
]
