from __future__ import annotations

import dataclasses
import enum
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from tubely.core.config import Settings
from tubely.core.errors import (
    MetadataError,
    ProcessingError,
    StorageError,
    TubelyError,
    UnsupportedMediaTypeError,
    UploadTooLargeError,
    ValidationError,
)
from tubely.core.logging import get_logger
from tubely.core.storage import ObjectStoreError, Storage
from tubely.db.repository import RecordStoreError, VideoRepository
from tubely.domain import VideoLocator, VideoRecord
from tubely.media import (
    AspectClass,
    MediaGeometry,
    MediaProber,
    MediaToolError,
    ObjectKey,
    StreamRemuxer,
    build_object_key,
    classify_aspect,
)

from .video_service import load_owned_record

ACCEPTED_CONTENT_TYPE = "video/mp4"
STAGED_FILE_PREFIX = "tubely-upload-"


class IngestState(str, enum.Enum):
    received = "received"
    staged = "staged"
    probed = "probed"
    remuxed = "remuxed"
    uploaded = "uploaded"
    committed = "committed"
    failed = "failed"


class UploadPart(Protocol):
    content_type: Optional[str]

    async def read(self, size: int = -1) -> bytes: ...


class UploadSource(Protocol):
    """Hands the orchestrator the uploaded file part once it asks for it."""

    async def open_part(self) -> UploadPart: ...


@dataclass(slots=True)
class IngestResult:
    record: VideoRecord
    state: IngestState
    geometry: MediaGeometry
    aspect: AspectClass
    key: ObjectKey


class ScratchFiles:
    """Local temp files owned by a single ingest run."""

    def __init__(self, logger: Any):
        self._paths: list[Path] = []
        self.logger = logger

    def track(self, path: Path) -> Path:
        self._paths.append(path)
        return path

    def release(self) -> None:
        for path in self._paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                self.logger.warning("ingest_tempfile_cleanup_failed", path=str(path), error=str(cleanup_error))
            else:
                self.logger.debug("ingest_tempfile_removed", path=str(path))


def media_type(value: Optional[str]) -> str:
    return (value or "").split(";", 1)[0].strip().lower()


class VideoIngestService:
    """Runs an uploaded video through staging, probing, remuxing, upload and commit.

    The run is strictly sequential and request scoped. Ownership is verified
    before the request body is parsed, so a caller who does not own the record
    causes no temp files, tool runs or store writes. Every exit path removes
    the staged and remuxed files. Nothing is retried.
    """

    def __init__(
        self,
        settings: Settings,
        repository: VideoRepository,
        storage: Storage,
        prober: MediaProber,
        remuxer: StreamRemuxer,
        *,
        key_builder: Callable[[AspectClass], ObjectKey] = build_object_key,
    ):
        self.settings = settings
        self.repository = repository
        self.storage = storage
        self.prober = prober
        self.remuxer = remuxer
        self.key_builder = key_builder
        self.logger = get_logger(component="ingest_service")

    async def ingest(self, *, video_id: str, principal_id: str, upload: UploadSource) -> IngestResult:
        logger = self.logger.bind(video_id=video_id, principal_id=principal_id)
        scratch = ScratchFiles(logger)
        state = IngestState.received
        logger.info("ingest_state", state=state.value)

        def advance(next_state: IngestState) -> None:
            nonlocal state
            state = next_state
            logger.info("ingest_state", state=state.value)

        try:
            record = await load_owned_record(self.repository, video_id, principal_id)

            part = await upload.open_part()
            self._check_content_type(part.content_type)
            staged = await self._stage(part, scratch, logger)
            advance(IngestState.staged)

            geometry = await self._run_media_step("probe", self.prober.probe(staged), logger)
            advance(IngestState.probed)

            remuxed = scratch.track(await self._run_media_step("remux", self.remuxer.remux(staged), logger))
            advance(IngestState.remuxed)

            aspect = classify_aspect(geometry)
            key = self.key_builder(aspect)
            bucket = self.settings.storage_bucket
            await self._upload(remuxed, bucket, str(key), logger)
            advance(IngestState.uploaded)

            committed = await self._commit(record, VideoLocator(bucket=bucket, key=str(key)), logger)
            advance(IngestState.committed)
        except TubelyError as exc:
            logger.warning("ingest_failed", state=IngestState.failed.value, failed_from=state.value, code=exc.code)
            raise
        finally:
            scratch.release()

        logger.info("ingest_completed", bucket=bucket, key=str(key), aspect=aspect.value)
        return IngestResult(record=committed, state=state, geometry=geometry, aspect=aspect, key=key)

    @staticmethod
    def _check_content_type(declared: Optional[str]) -> None:
        parsed = media_type(declared)
        if not parsed:
            raise ValidationError("invalid_content_type", "Missing Content-Type for video part")
        if parsed != ACCEPTED_CONTENT_TYPE:
            raise UnsupportedMediaTypeError(message="Only MP4 videos are allowed")

    def _scratch_dir(self) -> Optional[Path]:
        scratch_dir = self.settings.scratch_dir
        if scratch_dir is not None:
            Path(scratch_dir).mkdir(parents=True, exist_ok=True)
        return scratch_dir

    async def _stage(self, part: UploadPart, scratch: ScratchFiles, logger: Any) -> Path:
        limit = self.settings.max_upload_size_bytes
        chunk_size = self.settings.upload_chunk_size_bytes
        written = 0
        try:
            with tempfile.NamedTemporaryFile(
                delete=False,
                prefix=STAGED_FILE_PREFIX,
                suffix=".mp4",
                dir=self._scratch_dir(),
            ) as handle:
                staged = scratch.track(Path(handle.name))
                while chunk := await part.read(chunk_size):
                    written += len(chunk)
                    if written > limit:
                        raise UploadTooLargeError(message=f"Upload exceeds {limit} bytes")
                    handle.write(chunk)
        except OSError as exc:
            raise ProcessingError("staging_failed", "Failed to save video") from exc
        logger.debug("ingest_staged", path=str(staged), size_bytes=written)
        return staged

    async def _run_media_step(self, step: str, pending: Any, logger: Any) -> Any:
        try:
            return await pending
        except MediaToolError as exc:
            logger.error(
                "ingest_media_step_failed",
                step=step,
                reason=exc.reason.value,
                stderr=exc.stderr,
            )
            raise ProcessingError(f"{step}_{exc.reason.value}", "Video processing failed") from exc

    async def _upload(self, remuxed: Path, bucket: str, key: str, logger: Any) -> None:
        try:
            with remuxed.open("rb") as handle:
                handle.seek(0)
                await self.storage.put_object(bucket, key, handle, content_type=ACCEPTED_CONTENT_TYPE)
        except ObjectStoreError as exc:
            logger.error("ingest_upload_failed", bucket=bucket, key=key, error=str(exc))
            raise StorageError(message="Failed to upload video") from exc
        except OSError as exc:
            raise ProcessingError("remuxed_file_unreadable", "Failed to read processed video") from exc

    async def _commit(self, record: VideoRecord, locator: VideoLocator, logger: Any) -> VideoRecord:
        updated = dataclasses.replace(record, locator=locator)
        try:
            return await self.repository.update(updated)
        except RecordStoreError as exc:
            # The object stays in the bucket; reconciliation happens out of band.
            logger.error("ingest_orphaned_object", bucket=locator.bucket, key=locator.key, error=str(exc))
            raise MetadataError(message="Failed to update video") from exc


__all__ = [
    "ACCEPTED_CONTENT_TYPE",
    "IngestResult",
    "IngestState",
    "ScratchFiles",
    "UploadPart",
    "UploadSource",
    "VideoIngestService",
    "media_type",
]
