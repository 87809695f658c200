"""
Media upload and listing endpoints.

Upload flow:
1. Client posts multipart/form-data with a `file` part and optional `userId`
2. Body is accumulated (bounded by max_upload_size_mb) and decoded
3. MediaService validates the file and forwards it to the upload backend
4. The backend's descriptor is returned

Listing merges every configured backend's view of a user's media,
newest first. A backend outage shrinks the listing instead of failing it.

Errors are raised as MediaError subclasses and rendered by the
application's exception handler as {error, details}.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...core.media.errors import PayloadTooLargeError
from ...core.media.models import MediaDescriptor
from ...core.media.multipart import extract_boundary, parse_multipart
from ..dependencies import MediaServiceDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    """Serializes snake_case fields as camelCase, which the web client expects."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MediaDescriptorResponse(CamelModel):
    """One stored media object."""
    id: str = Field(description="Backend object key or public id")
    url: str = Field(description="Public URL of the object")
    original_name: str = Field(description="Filename as uploaded, or the stored name for listings")
    size_bytes: int = Field(description="Object size in bytes")
    media_type: str = Field(description="image, video or unknown")
    upload_timestamp: datetime = Field(description="When the object was stored")
    format: str = Field(description="File extension")
    storage_backend: str = Field(description="bucket or media-service")

    @classmethod
    def from_descriptor(cls, descriptor: MediaDescriptor) -> "MediaDescriptorResponse":
        return cls(
            id=descriptor.id,
            url=descriptor.url,
            original_name=descriptor.original_name,
            size_bytes=descriptor.size_bytes,
            media_type=descriptor.media_type.value,
            upload_timestamp=descriptor.upload_timestamp,
            format=descriptor.format,
            storage_backend=descriptor.storage_backend.value,
        )


class UploadedMediaResponse(MediaDescriptorResponse):
    """Descriptor of a fresh upload, with the user it was stored for."""
    user_id: str = Field(description="User the file was stored under")


class UploadResponse(CamelModel):
    """Response after a successful upload."""
    success: bool = True
    message: str = Field(description="Status message")
    data: UploadedMediaResponse


class MediaListResponse(CamelModel):
    """A user's media, newest first."""
    success: bool = True
    data: list[MediaDescriptorResponse]
    count: int = Field(description="Number of items in data")
    user_id: str = Field(description="User whose media was listed")
    sources: Optional[dict[str, int]] = Field(
        default=None,
        description="Items per backend; present when more than one backend was queried"
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a photo or video",
    description="multipart/form-data with a `file` part and an optional `userId` field",
)
async def upload_media(
    request: Request,
    service: MediaServiceDep,
    settings: SettingsDep,
) -> UploadResponse:
    """
    Upload a single image or video.

    The body is read in full before decoding; reading stops with 413 as
    soon as it exceeds the configured limit.
    """
    content_type = request.headers.get("content-type")

    # fail on a missing boundary before reading anything
    extract_boundary(content_type)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > settings.max_upload_size_bytes:
            logger.warning(
                "Upload body over limit",
                extra={"max_upload_size_mb": settings.max_upload_size_mb}
            )
            raise PayloadTooLargeError(settings.max_upload_size_mb)

    form = parse_multipart(bytes(body), content_type)

    logger.debug(
        "Decoded upload form",
        extra={"fields": list(form.fields), "files": list(form.files)}
    )

    user_id, descriptor = await service.upload(form)

    response = UploadedMediaResponse(
        **MediaDescriptorResponse.from_descriptor(descriptor).model_dump(),
        user_id=user_id,
    )

    return UploadResponse(
        message=f"File uploaded to {descriptor.storage_backend.value}",
        data=response,
    )


@router.get(
    "/get-photos",
    response_model=MediaListResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="List a user's media",
    description="Media from every configured backend, sorted newest first",
)
async def list_media(
    service: MediaServiceDep,
    user_id: Annotated[Optional[str], Query(alias="userId")] = None,
) -> MediaListResponse:
    """
    List a user's uploaded photos and videos.

    `sources` reports how many items each backend contributed; a backend
    that failed shows 0.
    """
    listing = await service.list_media(user_id)

    sources = None
    if len(service.listing_backends) > 1:
        sources = {kind.value: count for kind, count in listing.sources.items()}

    return MediaListResponse(
        data=[MediaDescriptorResponse.from_descriptor(d) for d in listing.items],
        count=listing.count,
        user_id=user_id,
        sources=sources,
    )
