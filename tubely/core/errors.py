"""Error taxonomy shared by the pipeline and the HTTP layer.

Every error carries a stable machine-readable ``code`` and the HTTP status it
maps to. Messages are safe to return to clients; diagnostics such as tool
stderr belong in the logs, not here.
"""

from __future__ import annotations

from fastapi import status


class TubelyError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "internal_error"

    def __init__(self, code: str | None = None, message: str | None = None) -> None:
        self.code = code or self.default_code
        self.message = message
        super().__init__(message or self.code)


class ValidationError(TubelyError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "invalid_request"


class NotFoundError(ValidationError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class UploadTooLargeError(ValidationError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    default_code = "upload_too_large"


class UnsupportedMediaTypeError(ValidationError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_code = "unsupported_media_type"


class AuthenticationError(TubelyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthenticated"


class AuthorizationError(TubelyError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"


class ProcessingError(TubelyError):
    default_code = "processing_failed"


class StorageError(TubelyError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "storage_failed"


class MetadataError(TubelyError):
    default_code = "metadata_failed"


class SigningError(TubelyError):
    default_code = "signing_failed"


class KeyGenerationError(TubelyError):
    default_code = "key_generation_failed"


__all__ = [
    "TubelyError",
    "ValidationError",
    "NotFoundError",
    "UploadTooLargeError",
    "UnsupportedMediaTypeError",
    "AuthenticationError",
    "AuthorizationError",
    "ProcessingError",
    "StorageError",
    "MetadataError",
    "SigningError",
    "KeyGenerationError",
]
