from __future__ import annotations

import asyncio
import io
import threading
from urllib.parse import parse_qs, urlparse

import boto3
import pytest
from botocore.stub import ANY, Stubber

from tubely.core.config import get_settings
from tubely.core.storage import InMemoryStorage, LocalStorage, ObjectStoreError, S3Storage, get_storage


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_default_backend_is_local(monkeypatch, tmp_path):
    monkeypatch.delenv("TUBELY_STORAGE_BACKEND", raising=False)
    settings = get_settings()
    assert settings.storage_backend == "local"
    assert isinstance(get_storage(settings), LocalStorage)


def test_selecting_s3_returns_s3_storage(monkeypatch):
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "s3")
    monkeypatch.setenv("TUBELY_S3_REGION", "eu-west-1")
    storage = get_storage(get_settings())
    assert isinstance(storage, S3Storage)
    assert storage.region == "eu-west-1"


def test_selecting_memory_returns_memory_storage(monkeypatch):
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "memory")
    assert isinstance(get_storage(get_settings()), InMemoryStorage)


def test_bucket_alias(monkeypatch):
    monkeypatch.setenv("TUBELY_BUCKET", "aliased-bucket")
    assert get_settings().storage_bucket == "aliased-bucket"


@pytest.fixture()
def local_storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "objects", signing_secret="s3cret", public_base_url="http://assets.test/")


def test_local_put_get_and_presign(local_storage):
    asyncio.run(local_storage.put_object("videos", "landscape/abc.mp4", io.BytesIO(b"payload"), content_type="video/mp4"))

    assert asyncio.run(local_storage.get_object("videos", "landscape/abc.mp4")) == b"payload"

    presigned = asyncio.run(local_storage.presign_get("videos", "landscape/abc.mp4", expires_s=900))
    parsed = urlparse(presigned.url)
    assert f"{parsed.scheme}://{parsed.netloc}" == "http://assets.test"
    assert parsed.path == "/v1/assets/videos/landscape/abc.mp4"
    query = parse_qs(parsed.query)
    expires = int(query["expires"][0])
    assert expires == int(presigned.expires_at.timestamp())
    assert local_storage.verify_signature("videos", "landscape/abc.mp4", expires, query["signature"][0])


def test_local_signature_rejects_tampering_and_expiry(local_storage):
    presigned = asyncio.run(local_storage.presign_get("videos", "portrait/k.mp4", expires_s=60))
    query = parse_qs(urlparse(presigned.url).query)
    expires = int(query["expires"][0])
    signature = query["signature"][0]

    assert local_storage.verify_signature("videos", "portrait/k.mp4", expires, signature)
    assert not local_storage.verify_signature("videos", "portrait/other.mp4", expires, signature)
    assert not local_storage.verify_signature("videos", "portrait/k.mp4", expires + 1, signature)
    assert not local_storage.verify_signature("videos", "portrait/k.mp4", expires, signature, now=expires + 1)


def test_local_overwrite_is_atomic(local_storage):
    asyncio.run(local_storage.put_object("videos", "k.mp4", io.BytesIO(b"one"), content_type="video/mp4"))
    asyncio.run(local_storage.put_object("videos", "k.mp4", io.BytesIO(b"two"), content_type="video/mp4"))
    target = local_storage.resolve("videos", "k.mp4")
    assert target.read_bytes() == b"two"
    assert [path.name for path in target.parent.iterdir()] == ["k.mp4"]


@pytest.mark.parametrize(("bucket", "key"), [("videos", "../../etc/passwd"), ("..", "x.mp4"), ("videos", "")])
def test_local_rejects_escaping_locations(local_storage, bucket, key):
    with pytest.raises(ObjectStoreError):
        local_storage.resolve(bucket, key)


def test_local_missing_object(local_storage):
    with pytest.raises(ObjectStoreError):
        asyncio.run(local_storage.get_object("videos", "missing.mp4"))


def test_memory_storage_round_trip():
    storage = InMemoryStorage()
    asyncio.run(storage.put_object("b", "other/k.mp4", io.BytesIO(b"data"), content_type="video/mp4"))
    assert asyncio.run(storage.get_object("b", "other/k.mp4")) == b"data"
    assert storage.content_type("b", "other/k.mp4") == "video/mp4"
    assert asyncio.run(storage.presign_get("b", "other/k.mp4", expires_s=900)).url.startswith("memory://b/other/k.mp4?")
    with pytest.raises(ObjectStoreError):
        asyncio.run(storage.get_object("b", "nope"))


class _ThreadRecordingBody(io.BytesIO):
    def __init__(self, data: bytes):
        super().__init__(data)
        self.read_threads: list[int] = []

    def read(self, size: int | None = -1) -> bytes:
        self.read_threads.append(threading.get_ident())
        return super().read(size)


def test_memory_storage_reads_body_off_the_event_loop():
    body = _ThreadRecordingBody(b"data")

    async def _put() -> int:
        await InMemoryStorage().put_object("b", "k.mp4", body, content_type="video/mp4")
        return threading.get_ident()

    loop_thread = asyncio.run(_put())

    assert body.read_threads
    assert loop_thread not in body.read_threads


@pytest.fixture()
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_s3_put_object(s3_client):
    storage = S3Storage(client=s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "put_object",
            {"ETag": '"etag"'},
            {"Bucket": "videos", "Key": "landscape/k.mp4", "Body": ANY, "ContentType": "video/mp4"},
        )
        asyncio.run(storage.put_object("videos", "landscape/k.mp4", io.BytesIO(b"payload"), content_type="video/mp4"))
        stubber.assert_no_pending_responses()


def test_s3_client_error_becomes_object_store_error(s3_client):
    storage = S3Storage(client=s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(ObjectStoreError):
            asyncio.run(storage.put_object("videos", "k.mp4", io.BytesIO(b"payload"), content_type="video/mp4"))


def test_s3_presign_get(s3_client):
    storage = S3Storage(client=s3_client)
    presigned = asyncio.run(storage.presign_get("videos", "portrait/k.mp4", expires_s=900))
    assert "portrait/k.mp4" in presigned.url
    assert "videos" in presigned.url
    query = parse_qs(urlparse(presigned.url).query)
    assert query.get("X-Amz-Expires") == ["900"] or "Expires" in query


def test_s3_client_is_created_lazily(monkeypatch):
    created: list[dict] = []

    def _fake_client(service, **kwargs):
        created.append({"service": service, **kwargs})
        return object()

    monkeypatch.setattr(boto3, "client", _fake_client)
    storage = S3Storage(region="eu-west-1", endpoint_url="http://localhost:4566")
    assert created == []
    storage.client
    storage.client
    assert created == [{"service": "s3", "region_name": "eu-west-1", "endpoint_url": "http://localhost:4566"}]
