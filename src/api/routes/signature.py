"""
Signed parameters for direct browser uploads to Cloudinary.

The browser uploads straight to Cloudinary with these values, so the
file never passes through this server.
"""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...core.media.errors import StorageBackendError
from ...infrastructure.storage.media_service import sign_upload_request
from ..dependencies import SigningBackendDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SignatureResponse(BaseModel):
    """Everything the client needs to sign its own Cloudinary upload."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: int = Field(description="Unix time the signature was issued")
    signature: str = Field(description="Request signature")
    cloud_name: str = Field(description="Cloudinary cloud name")
    api_key: str = Field(description="Cloudinary public API key")


@router.get(
    "/sign-upload",
    response_model=SignatureResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign a direct upload",
)
async def sign_upload(backend: SigningBackendDep) -> SignatureResponse:
    """Issue a fresh upload signature."""
    if backend is None:
        raise StorageBackendError(
            "Media service is not configured",
            details="CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET must be set",
        )

    signed = sign_upload_request(backend.config)

    logger.info("Issued upload signature", extra={"timestamp": signed.timestamp})

    return SignatureResponse(
        timestamp=signed.timestamp,
        signature=signed.signature,
        cloud_name=signed.cloud_name,
        api_key=signed.api_key,
    )
