"""
FastAPI dependency injection.

Dependencies build the storage backends and the media service from
Settings, so route handlers never read configuration or construct
vendor clients themselves, and tests can swap any of them through
app.dependency_overrides.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.media.service import MediaService
from ..infrastructure.storage.base import StorageBackend
from ..infrastructure.storage.client import S3Config, create_bucket_backend
from ..infrastructure.storage.media_service import (
    CloudinaryConfig,
    CloudinaryMediaBackend,
    MockCloudinaryMediaBackend,
    create_media_service_backend,
)

logger = logging.getLogger(__name__)

# Global mock instances (shared across requests so uploads persist)
_mock_bucket_backend = None
_mock_media_service_backend = None


def _s3_config(settings: Settings) -> S3Config:
    return S3Config(
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        bucket_name=settings.aws_s3_bucket_name,
        region=settings.aws_region,
        endpoint_url=settings.s3_endpoint_url,
        key_prefix=settings.s3_key_prefix,
        public_read=settings.s3_public_read,
        max_keys=settings.s3_max_keys,
    )


def _cloudinary_config(settings: Settings) -> CloudinaryConfig:
    return CloudinaryConfig(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        folder=settings.cloudinary_folder,
        max_results=settings.cloudinary_max_results,
    )


def build_bucket_backend(settings: Settings) -> StorageBackend:
    """
    Provide the S3 bucket backend.

    In mock mode, we reuse the same backend across requests
    so that uploaded files persist during the session.
    """
    global _mock_bucket_backend

    if settings.s3_mock_mode:
        if _mock_bucket_backend is None:
            _mock_bucket_backend = create_bucket_backend(mock_mode=True)
            logger.info("Created shared mock bucket backend for session")
        return _mock_bucket_backend

    return create_bucket_backend(config=_s3_config(settings))


def build_media_service_backend(settings: Settings) -> StorageBackend:
    """Provide the Cloudinary backend, shared in mock mode like the bucket."""
    global _mock_media_service_backend

    if settings.cloudinary_mock_mode:
        if _mock_media_service_backend is None:
            _mock_media_service_backend = create_media_service_backend(mock_mode=True)
            logger.info("Created shared mock Cloudinary backend for session")
        return _mock_media_service_backend

    return create_media_service_backend(config=_cloudinary_config(settings))


def build_backend(name: str, settings: Settings) -> StorageBackend:
    if name == "media-service":
        return build_media_service_backend(settings)
    return build_bucket_backend(settings)


def get_media_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MediaService:
    """
    Provide MediaService wired to the configured backends.

    The service is stateless, so we create a new instance per request.
    A backend enabled for both uploads and listings is built once.
    """
    backends: dict[str, StorageBackend] = {}
    for name in settings.enabled_backends:
        backends[name] = build_backend(name, settings)

    listing = [backends[name] for name in settings.listing_backends_list]

    return MediaService(
        upload_backend=backends[settings.upload_backend],
        listing_backends=listing,
        default_user_id=settings.default_user_id,
    )


def get_signing_backend(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Optional[CloudinaryMediaBackend | MockCloudinaryMediaBackend]:
    """
    Provide the Cloudinary backend used to sign direct uploads.

    Returns None when Cloudinary credentials are not configured; the
    route turns that into a backend error.
    """
    if not settings.media_service_configured:
        logger.warning("Upload signature requested but Cloudinary is not configured")
        return None
    return build_media_service_backend(settings)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

MediaServiceDep = Annotated[MediaService, Depends(get_media_service)]
SigningBackendDep = Annotated[
    Optional[CloudinaryMediaBackend | MockCloudinaryMediaBackend],
    Depends(get_signing_backend),
]
SettingsDep = Annotated[Settings, Depends(get_settings)]
