from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import FileResponse

from tubely.api import deps
from tubely.core.errors import AuthorizationError, NotFoundError
from tubely.core.storage import LocalStorage, ObjectStoreError, Storage

from .schemas import ErrorResponse


router = APIRouter(
    prefix="/assets",
    tags=["assets"],
    responses={
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
)


@router.get("/{bucket}/{key:path}", summary="Serve a locally stored object via a signed URL")
async def fetch_asset(
    bucket: str,
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    storage: Storage = Depends(deps.get_storage),
) -> FileResponse:
    if not isinstance(storage, LocalStorage):
        raise NotFoundError("asset_not_found", "Asset not found")
    if not storage.verify_signature(bucket, key, expires, signature):
        raise AuthorizationError("invalid_signature", "Signed URL is invalid or expired")
    try:
        path = storage.resolve(bucket, key)
    except ObjectStoreError as exc:
        raise NotFoundError("asset_not_found", "Asset not found") from exc
    if not path.is_file():
        raise NotFoundError("asset_not_found", "Asset not found")
    return FileResponse(path)


__all__ = ["router"]
