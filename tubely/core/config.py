from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for bearer JWT validation.")
    asset_signing_secret: str = Field(
        default="change-me-too",
        description="HMAC key for signed URLs issued by the local storage backend.",
    )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Tubely API."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Tubely API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tubely.db",
        description="SQLAlchemy compatible DSN.",
    )

    storage_backend: Literal["local", "s3", "memory"] = Field(default="local", description="Active object store.")
    local_storage_base_path: Path = Field(
        default_factory=lambda: Path("assets"),
        description="Root directory for the local storage backend.",
    )
    storage_bucket: str = Field(default="tubely-videos", description="Bucket receiving uploaded videos.")
    s3_region: Optional[str] = Field(default=None, description="AWS region for the S3 backend.")
    s3_endpoint_url: Optional[str] = Field(default=None, description="Override endpoint (LocalStack, MinIO).")
    public_base_url: str = Field(
        default="http://localhost:8091",
        description="External base URL used when the local backend signs asset URLs.",
    )

    max_upload_size_bytes: int = Field(default=1 << 30, description="Hard ceiling for upload request bodies.")
    upload_chunk_size_bytes: int = Field(default=1024 * 1024, ge=1, description="Chunk size when staging uploads.")
    scratch_dir: Optional[Path] = Field(default=None, description="Directory for staged uploads (system temp if unset).")

    ffprobe_binary: str = Field(default="ffprobe")
    ffmpeg_binary: str = Field(default="ffmpeg")
    media_tool_timeout_s: float = Field(default=300.0, gt=0, description="Wall clock limit for ffprobe/ffmpeg runs.")

    signed_url_ttl_s: int = Field(default=15 * 60, gt=0, description="Validity of signed video URLs.")

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "TUBELY_ENV": "TUBELY_ENVIRONMENT",
        "TUBELY_DB_URL": "TUBELY_DATABASE_URL",
        "TUBELY_BUCKET": "TUBELY_STORAGE_BUCKET",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()

    secrets = Secrets.from_settings(settings)

    if settings.environment_lower == "production":
        if secrets.jwt_secret == "change-me":
            raise ValueError("Production environment must have a non-default JWT secret.")
        if settings.storage_backend == "local" and secrets.asset_signing_secret == "change-me-too":
            raise ValueError("Production environment must have a non-default asset signing secret.")

    settings.secrets = secrets
    return settings


__all__ = ["Settings", "Secrets", "get_settings"]
