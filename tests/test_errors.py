from __future__ import annotations

import pytest

from tubely.core.errors import (
    AuthenticationError,
    AuthorizationError,
    KeyGenerationError,
    NotFoundError,
    ProcessingError,
    StorageError,
    UnsupportedMediaTypeError,
    UploadTooLargeError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error_cls", "status_code", "code"),
    [
        (ValidationError, 400, "invalid_request"),
        (AuthenticationError, 401, "unauthenticated"),
        (AuthorizationError, 403, "forbidden"),
        (NotFoundError, 404, "not_found"),
        (UploadTooLargeError, 413, "upload_too_large"),
        (UnsupportedMediaTypeError, 415, "unsupported_media_type"),
        (ProcessingError, 500, "processing_failed"),
        (KeyGenerationError, 500, "key_generation_failed"),
        (StorageError, 502, "storage_failed"),
    ],
)
def test_error_status_and_default_code(error_cls, status_code, code):
    error = error_cls()
    assert error.status_code == status_code
    assert error.code == code
    assert str(error) == code


def test_message_overrides_string_but_not_code():
    error = UploadTooLargeError(message="Upload exceeds 1024 bytes")
    assert error.code == "upload_too_large"
    assert str(error) == "Upload exceeds 1024 bytes"
