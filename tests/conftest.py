import asyncio
import os
import shutil
import subprocess
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tubely.core.config import get_settings
from tubely.core.db import Base, create_engine
from tubely.main import create_app

from tests.helpers import JWT_AUDIENCE, JWT_ISSUER, JWT_SECRET, TEST_BUCKET, FakeMediaTools, auth_headers


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Tubely environment bootstrap fixture for tests that manage their own .env",
    )
    config.addinivalue_line("markers", "requires_ffmpeg: needs real ffmpeg/ffprobe binaries on PATH")


@pytest.fixture()
def fake_tools(tmp_path) -> FakeMediaTools:
    return FakeMediaTools.install(tmp_path / "bin")


@pytest.fixture()
def scratch_dir(tmp_path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path, fake_tools, scratch_dir):
    # load_dotenv and the alias map write straight into os.environ
    for key in list(os.environ):
        if key.startswith("TUBELY_"):
            monkeypatch.delenv(key, raising=False)
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return
    db_path = tmp_path / "tubely_test.db"

    monkeypatch.setenv("TUBELY_ENV", "test")
    monkeypatch.setenv("TUBELY_ENVIRONMENT", "test")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TUBELY_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("TUBELY_LOCAL_STORAGE_BASE_PATH", str(tmp_path / "assets"))
    monkeypatch.setenv("TUBELY_STORAGE_BUCKET", TEST_BUCKET)
    monkeypatch.setenv("TUBELY_SCRATCH_DIR", str(scratch_dir))
    monkeypatch.setenv("TUBELY_FFPROBE_BINARY", str(fake_tools.ffprobe))
    monkeypatch.setenv("TUBELY_FFMPEG_BINARY", str(fake_tools.ffmpeg))
    monkeypatch.setenv("TUBELY_MEDIA_TOOL_TIMEOUT_S", "30")
    monkeypatch.setenv("TUBELY_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("TUBELY_JWT_ISSUER", JWT_ISSUER)
    monkeypatch.setenv("TUBELY_JWT_AUDIENCE", JWT_AUDIENCE)
    monkeypatch.setenv("TUBELY_ASSET_SIGNING_SECRET", "asset-test-secret")
    monkeypatch.setenv("TUBELY_PUBLIC_BASE_URL", "http://testserver")

    get_settings.cache_clear()
    settings = get_settings()
    engine = create_engine(settings)

    async def _setup() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_setup())

    yield

    async def _teardown() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


@pytest.fixture()
def client(configure_environment):
    app = create_app()
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def owner_headers() -> dict[str, str]:
    return auth_headers("user-owner")


@pytest.fixture()
def stranger_headers() -> dict[str, str]:
    return auth_headers("user-stranger")


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return auth_headers("user-admin", scopes=["admin"])


@pytest.fixture(scope="session")
def generated_video_file(tmp_path_factory) -> Path:
    """
    Generates a small 16:9 MP4 with a real encoder, skipping when ffmpeg is absent.
    """
    if shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None:
        pytest.skip("ffmpeg/ffprobe not installed")
    video_path = tmp_path_factory.mktemp("data") / "test_video.mp4"

    # 1 second of solid colour, written without faststart so the index trails the media
    command = [
        "ffmpeg",
        "-v", "error",
        "-f", "lavfi",
        "-i", "color=c=black:s=320x180:r=30",
        "-t", "1",
        "-pix_fmt", "yuv420p",
        str(video_path),
    ]
    subprocess.run(command, check=True, capture_output=True)
    return video_path
