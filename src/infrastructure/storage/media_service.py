"""
Cloudinary media service backend.

Uploads land in the folder {folder}/{user_id}; listing queries that
folder once for images and once for videos, since Cloudinary's Admin API
lists one resource type at a time.

Credentials are passed on every SDK call instead of through
cloudinary.config(), so the process-wide SDK state is never touched and
several configurations can coexist (tests rely on this).
"""

import asyncio
import io
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import cloudinary.api
import cloudinary.uploader
import cloudinary.utils

from ...core.media.errors import StorageBackendError
from ...core.media.models import (
    MediaDescriptor,
    MediaType,
    StorageBackendKind,
    UploadedFile,
)
from ...core.media.naming import file_extension, strip_extension

logger = logging.getLogger(__name__)

LISTED_RESOURCE_TYPES = ("image", "video")


@dataclass
class CloudinaryConfig:
    """Configuration for the Cloudinary backend."""
    cloud_name: str
    api_key: str
    api_secret: str
    folder: str = "photo-uploader"
    max_results: int = 100

    @property
    def credentials(self) -> dict[str, str]:
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
        }

    def user_folder(self, user_id: str) -> str:
        return f"{self.folder}/{user_id}"


@dataclass(frozen=True)
class UploadSignature:
    """Signed parameters for a direct browser-to-Cloudinary upload."""
    timestamp: int
    signature: str
    cloud_name: str
    api_key: str


def sign_upload_request(config: CloudinaryConfig, timestamp: Optional[int] = None) -> UploadSignature:
    """
    Sign an upload request with the account's API secret.

    The client posts the timestamp and signature along with the file;
    Cloudinary rejects signatures older than one hour.
    """
    if timestamp is None:
        timestamp = int(time.time())

    signature = cloudinary.utils.api_sign_request(
        {"timestamp": timestamp},
        config.api_secret,
    )

    return UploadSignature(
        timestamp=timestamp,
        signature=signature,
        cloud_name=config.cloud_name,
        api_key=config.api_key,
    )


def resource_to_descriptor(resource: dict[str, Any], resource_type: Optional[str] = None) -> MediaDescriptor:
    """
    Map an upload or Admin API resource into a descriptor.

    Listing responses don't always carry resource_type, so the caller
    may supply the type it asked for.
    """
    public_id = resource["public_id"]
    kind = resource.get("resource_type") or resource_type

    original_name = (
        resource.get("original_filename")
        or resource.get("filename")
        or resource.get("display_name")
        or public_id.rsplit("/", 1)[-1]
    )

    return MediaDescriptor(
        id=public_id,
        url=resource.get("secure_url") or resource.get("url", ""),
        original_name=original_name,
        size_bytes=resource.get("bytes") or 0,
        media_type=_media_type(kind),
        upload_timestamp=_parse_timestamp(resource.get("created_at")),
        format=resource.get("format") or "",
        storage_backend=StorageBackendKind.MEDIA_SERVICE,
    )


def _media_type(resource_type: Optional[str]) -> MediaType:
    if resource_type == "image":
        return MediaType.IMAGE
    if resource_type == "video":
        return MediaType.VIDEO
    return MediaType.UNKNOWN


def _parse_timestamp(value: Any) -> datetime:
    """Cloudinary returns ISO 8601 strings with a trailing Z."""
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class CloudinaryMediaBackend:
    """
    Cloudinary backend.

    The SDK is synchronous (urllib3 underneath); calls run in worker
    threads like the S3 backend's.
    """

    kind = StorageBackendKind.MEDIA_SERVICE

    def __init__(self, config: CloudinaryConfig) -> None:
        self._config = config
        logger.info(
            "Initialized Cloudinary media backend",
            extra={"cloud_name": config.cloud_name, "folder": config.folder}
        )

    @property
    def config(self) -> CloudinaryConfig:
        return self._config

    async def upload_media(
        self,
        upload: UploadedFile,
        user_id: str,
        storage_name: str,
    ) -> MediaDescriptor:
        """
        Upload a file into the user's folder.

        The public id drops the extension; Cloudinary tracks the format
        separately and would otherwise double it in delivery URLs.
        """
        folder = self._config.user_folder(user_id)

        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                io.BytesIO(upload.raw_bytes),
                folder=folder,
                public_id=strip_extension(storage_name),
                resource_type="auto",
                context={"original_name": upload.original_filename, "user_id": user_id},
                **self._config.credentials,
            )
        except Exception as e:
            logger.error(
                "Failed to upload to Cloudinary",
                extra={"folder": folder, "error": str(e)}
            )
            raise StorageBackendError(
                "Failed to upload file to Cloudinary", details=str(e)
            ) from e

        descriptor = resource_to_descriptor(result)

        logger.info(
            "Uploaded to Cloudinary",
            extra={
                "public_id": descriptor.id,
                "user_id": user_id,
                "size_bytes": descriptor.size_bytes,
            }
        )

        return MediaDescriptor(
            id=descriptor.id,
            url=descriptor.url,
            original_name=upload.original_filename,
            size_bytes=descriptor.size_bytes or upload.size_bytes,
            media_type=descriptor.media_type,
            upload_timestamp=descriptor.upload_timestamp,
            format=descriptor.format or file_extension(upload.original_filename),
            storage_backend=self.kind,
        )

    async def list_media(self, user_id: str) -> list[MediaDescriptor]:
        """List images and videos in the user's folder."""
        prefix = self._config.user_folder(user_id)
        descriptors: list[MediaDescriptor] = []

        for resource_type in LISTED_RESOURCE_TYPES:
            try:
                result = await asyncio.to_thread(
                    cloudinary.api.resources,
                    type="upload",
                    prefix=prefix,
                    max_results=self._config.max_results,
                    resource_type=resource_type,
                    **self._config.credentials,
                )
            except Exception as e:
                logger.error(
                    "Failed to list Cloudinary resources",
                    extra={
                        "prefix": prefix,
                        "resource_type": resource_type,
                        "error": str(e),
                    }
                )
                raise StorageBackendError(
                    "Failed to list files from Cloudinary", details=str(e)
                ) from e

            descriptors.extend(
                resource_to_descriptor(resource, resource_type)
                for resource in result.get("resources", [])
            )

        logger.debug(
            "Listed Cloudinary resources",
            extra={"prefix": prefix, "count": len(descriptors)}
        )

        return descriptors


# ---------------------------------------------------------------------------
# Mock Backend for Local Development
# ---------------------------------------------------------------------------

class MockCloudinaryMediaBackend:
    """
    In-memory stand-in for Cloudinary.

    Stores resource dicts shaped like Cloudinary's responses so the same
    mapping code runs in mock mode.
    """

    kind = StorageBackendKind.MEDIA_SERVICE

    def __init__(self, config: Optional[CloudinaryConfig] = None) -> None:
        self._config = config or CloudinaryConfig(
            cloud_name="mock-cloud",
            api_key="mock-key",
            api_secret="mock-secret",
        )
        self._resources: list[dict[str, Any]] = []
        logger.info("Initialized mock Cloudinary backend (in-memory)")

    @property
    def config(self) -> CloudinaryConfig:
        return self._config

    async def upload_media(
        self,
        upload: UploadedFile,
        user_id: str,
        storage_name: str,
    ) -> MediaDescriptor:
        public_id = f"{self._config.user_folder(user_id)}/{strip_extension(storage_name)}"
        extension = file_extension(upload.original_filename)
        resource = {
            "public_id": public_id,
            "secure_url": (
                f"mock://cloudinary/{self._config.cloud_name}/{public_id}.{extension}"
            ),
            "original_filename": upload.original_filename,
            "bytes": upload.size_bytes,
            "resource_type": upload.mime_type.split("/", 1)[0],
            "created_at": datetime.now(timezone.utc).isoformat(),
            "format": extension,
        }
        self._resources.append(resource)
        return resource_to_descriptor(resource)

    async def list_media(self, user_id: str) -> list[MediaDescriptor]:
        prefix = self._config.user_folder(user_id)
        return [
            resource_to_descriptor(resource)
            for resource in self._resources
            if resource["public_id"].startswith(prefix)
            and resource["resource_type"] in LISTED_RESOURCE_TYPES
        ]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_media_service_backend(
    config: Optional[CloudinaryConfig] = None,
    mock_mode: bool = False,
):
    """Create the Cloudinary backend (real or mock) based on configuration."""
    if mock_mode:
        return MockCloudinaryMediaBackend(config)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return CloudinaryMediaBackend(config)
