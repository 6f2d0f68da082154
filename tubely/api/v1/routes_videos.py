from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from tubely.api import deps
from tubely.api.uploads import MultipartUploadSource
from tubely.core.config import Settings

from . import schemas


router = APIRouter(
    prefix="/videos",
    tags=["videos"],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": schemas.ErrorResponse},
        status.HTTP_403_FORBIDDEN: {"model": schemas.ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse},
    },
)

_UPLOAD_ERRORS = {
    status.HTTP_400_BAD_REQUEST: {"model": schemas.ErrorResponse, "description": "Missing file field or malformed video id"},
    status.HTTP_413_CONTENT_TOO_LARGE: {"model": schemas.ErrorResponse, "description": "Upload exceeds the size ceiling"},
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": schemas.ErrorResponse, "description": "Upload is not video/mp4"},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": schemas.ErrorResponse, "description": "Video processing failed"},
    status.HTTP_502_BAD_GATEWAY: {"model": schemas.ErrorResponse, "description": "Object store rejected the upload"},
}

_VIDEO_UPLOAD_BODY = {
    "requestBody": {
        "required": True,
        "content": {
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "properties": {"video": {"type": "string", "format": "binary"}},
                    "required": ["video"],
                }
            }
        },
    }
}


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    record = await service.create_video(owner_id=context.user_id, title=payload.title, description=payload.description)
    return schemas.VideoResponse.from_signed(await service.sign(record))


@router.get("", response_model=list[schemas.VideoResponse])
async def list_videos(service: deps.VideoServiceDependency, context: deps.AuthDependency) -> list[schemas.VideoResponse]:
    signed = await service.list_videos(principal_id=context.user_id)
    return [schemas.VideoResponse.from_signed(item) for item in signed]


@router.get("/{video_id}", response_model=schemas.VideoResponse)
async def get_video(
    video_id: str,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    signed = await service.get_video(video_id=video_id, principal_id=context.user_id)
    return schemas.VideoResponse.from_signed(signed)


@router.post(
    "/{video_id}/video",
    response_model=schemas.VideoResponse,
    summary="Upload and prepare the video file",
    openapi_extra=_VIDEO_UPLOAD_BODY,
    responses=_UPLOAD_ERRORS,
)
async def upload_video(
    video_id: str,
    request: Request,
    ingest: deps.IngestServiceDependency,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
    settings: Settings = Depends(deps.get_app_settings),
) -> schemas.VideoResponse:
    source = MultipartUploadSource(request, field="video", max_bytes=settings.max_upload_size_bytes)
    try:
        result = await ingest.ingest(video_id=video_id, principal_id=context.user_id, upload=source)
    finally:
        await source.close()
    return schemas.VideoResponse.from_signed(await service.sign(result.record))


__all__ = ["router"]
