from __future__ import annotations

import asyncio
import hashlib
import hmac
import os
import shutil
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO
from urllib.parse import quote, urlencode

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .logging import get_logger


class ObjectStoreError(Exception):
    """Raised by storage backends when an object operation cannot complete."""


@dataclass(slots=True)
class PresignedURL:
    url: str
    expires_at: datetime
    method: str = "GET"


def _expiry(expires_s: int) -> tuple[int, datetime]:
    expires_ts = int(time.time()) + expires_s
    return expires_ts, datetime.fromtimestamp(expires_ts, tz=timezone.utc)


class Storage(ABC):
    @abstractmethod
    async def put_object(self, bucket: str, key: str, body: BinaryIO, *, content_type: str) -> None: ...

    @abstractmethod
    async def get_object(self, bucket: str, key: str) -> bytes: ...

    @abstractmethod
    async def presign_get(self, bucket: str, key: str, *, expires_s: int) -> PresignedURL: ...


class LocalStorage(Storage):
    """Filesystem-backed storage suitable for development.

    Objects live at ``<base_path>/<bucket>/<key>``. Signed URLs point at the
    ``/v1/assets`` route and carry an HMAC over bucket, key and expiry.
    """

    def __init__(self, base_path: Path, *, signing_secret: str, public_base_url: str):
        self.base_path = base_path.resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._signing_secret = signing_secret.encode("utf-8")
        self.public_base_url = public_base_url.rstrip("/")
        self.logger = get_logger(component="local_storage")

    def resolve(self, bucket: str, key: str) -> Path:
        path = (self.base_path / bucket / key).resolve()
        if not key or not bucket or self.base_path not in path.parents:
            raise ObjectStoreError(f"invalid object location: {bucket}/{key}")
        return path

    def _write(self, target: Path, body: BinaryIO) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".partial-")
        try:
            with os.fdopen(fd, "wb") as handle:
                shutil.copyfileobj(body, handle)
            os.replace(tmp_name, target)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def put_object(self, bucket: str, key: str, body: BinaryIO, *, content_type: str) -> None:
        target = self.resolve(bucket, key)
        try:
            await asyncio.to_thread(self._write, target, body)
        except OSError as exc:
            raise ObjectStoreError(f"failed to write {bucket}/{key}") from exc
        self.logger.info("object_stored", bucket=bucket, key=key, content_type=content_type)

    async def get_object(self, bucket: str, key: str) -> bytes:
        target = self.resolve(bucket, key)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as exc:
            raise ObjectStoreError(f"failed to read {bucket}/{key}") from exc

    def _signature(self, bucket: str, key: str, expires_ts: int) -> str:
        message = f"{bucket}/{key}:{expires_ts}".encode("utf-8")
        return hmac.new(self._signing_secret, message, hashlib.sha256).hexdigest()

    async def presign_get(self, bucket: str, key: str, *, expires_s: int) -> PresignedURL:
        self.resolve(bucket, key)
        expires_ts, expires_at = _expiry(expires_s)
        query = urlencode({"expires": expires_ts, "signature": self._signature(bucket, key, expires_ts)})
        url = f"{self.public_base_url}/v1/assets/{quote(bucket)}/{quote(key)}?{query}"
        return PresignedURL(url=url, expires_at=expires_at)

    def verify_signature(self, bucket: str, key: str, expires_ts: int, signature: str, *, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        if expires_ts < current:
            return False
        return hmac.compare_digest(self._signature(bucket, key, expires_ts), signature)


class S3Storage(Storage):
    """Amazon S3 (or S3-compatible) storage using boto3."""

    def __init__(self, *, region: str | None = None, endpoint_url: str | None = None, client: Any | None = None):
        self.region = region
        self.endpoint_url = endpoint_url
        self._client = client
        self.logger = get_logger(component="s3_storage")

    @property
    def client(self) -> Any:
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.region:
                kwargs["region_name"] = self.region
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            self._client = boto3.client("s3", **kwargs)
        return self._client

    async def put_object(self, bucket: str, key: str, body: BinaryIO, *, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"s3 put failed for s3://{bucket}/{key}") from exc
        self.logger.info("object_stored", bucket=bucket, key=key, content_type=content_type)

    async def get_object(self, bucket: str, key: str) -> bytes:
        def _read() -> bytes:
            response = self.client.get_object(Bucket=bucket, Key=key)
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_read)
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"s3 get failed for s3://{bucket}/{key}") from exc

    async def presign_get(self, bucket: str, key: str, *, expires_s: int) -> PresignedURL:
        _, expires_at = _expiry(expires_s)
        try:
            url = await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_s,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"s3 presign failed for s3://{bucket}/{key}") from exc
        return PresignedURL(url=url, expires_at=expires_at)


class InMemoryStorage(Storage):
    """Process-lifetime object store, injected like any other backend."""

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], tuple[bytes, str]] = {}

    async def put_object(self, bucket: str, key: str, body: BinaryIO, *, content_type: str) -> None:
        data = await asyncio.to_thread(body.read)
        self._objects[(bucket, key)] = (data, content_type)

    async def get_object(self, bucket: str, key: str) -> bytes:
        try:
            return self._objects[(bucket, key)][0]
        except KeyError as exc:
            raise ObjectStoreError(f"no such object {bucket}/{key}") from exc

    def content_type(self, bucket: str, key: str) -> str | None:
        entry = self._objects.get((bucket, key))
        return entry[1] if entry else None

    def keys(self) -> list[tuple[str, str]]:
        return sorted(self._objects)

    async def presign_get(self, bucket: str, key: str, *, expires_s: int) -> PresignedURL:
        expires_ts, expires_at = _expiry(expires_s)
        url = f"memory://{quote(bucket)}/{quote(key)}?{urlencode({'expires': expires_ts})}"
        return PresignedURL(url=url, expires_at=expires_at)


def get_storage(settings: Settings) -> Storage:
    if settings.storage_backend == "local":
        return LocalStorage(
            base_path=Path(settings.local_storage_base_path),
            signing_secret=settings.secrets.asset_signing_secret,
            public_base_url=settings.public_base_url,
        )
    if settings.storage_backend == "s3":
        return S3Storage(region=settings.s3_region, endpoint_url=settings.s3_endpoint_url)
    if settings.storage_backend == "memory":
        return InMemoryStorage()
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "Storage",
    "LocalStorage",
    "S3Storage",
    "InMemoryStorage",
    "ObjectStoreError",
    "PresignedURL",
    "get_storage",
]
