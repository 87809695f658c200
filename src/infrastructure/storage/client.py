"""
S3 bucket storage backend for uploaded media.

Objects live under {key_prefix}/{user_id}/{storage_name}, so listing a
user's media is a single prefix query. Works against AWS S3 or any
S3-compatible endpoint (MinIO, R2) when endpoint_url is set.

Mock mode keeps objects in memory, enabling API testing without
provisioning a bucket.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

from ...core.media.errors import StorageBackendError
from ...core.media.models import (
    MediaDescriptor,
    StorageBackendKind,
    UploadedFile,
)
from ...core.media.naming import (
    file_extension,
    media_type_from_extension,
    media_type_from_mime,
)
from .base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class S3Config:
    """
    Configuration for the S3 bucket backend.

    Built once from Settings at startup and handed to the backend, so
    nothing below this point reads the environment.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    region: str = "eu-west-1"
    endpoint_url: Optional[str] = None
    key_prefix: str = "memories-to-cloud"
    public_read: bool = True
    max_keys: int = 1000

    def user_prefix(self, user_id: str) -> str:
        return f"{self.key_prefix}/{user_id}/"

    def public_url(self, key: str) -> str:
        """
        Public URL of an object.

        Virtual-hosted AWS style by default; path style for custom
        endpoints, which is what MinIO and R2 expect.
        """
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"


class S3StorageBackend:
    """
    S3 object storage backend.

    boto3 is synchronous, so every call is pushed to a worker thread to
    keep the event loop free while other backends are being queried.
    """

    kind = StorageBackendKind.BUCKET

    def __init__(self, config: S3Config, s3_client: Any = None) -> None:
        """
        Initialize the backend.

        An existing boto3 client may be passed in (tests do this);
        otherwise one is created from the config.
        """
        self._config = config

        if s3_client is None:
            try:
                import boto3
                from botocore.config import Config
            except ImportError:
                raise ImportError(
                    "boto3 is required for S3 storage. Install with: pip install boto3"
                )

            s3_client = boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
                region_name=config.region,
                config=Config(signature_version="s3v4"),
            )

        self._s3_client = s3_client

        logger.info(
            "Initialized S3 storage backend",
            extra={
                "bucket": config.bucket_name,
                "region": config.region,
                "endpoint": config.endpoint_url,
            }
        )

    async def upload_media(
        self,
        upload: UploadedFile,
        user_id: str,
        storage_name: str,
    ) -> MediaDescriptor:
        """
        Upload a file to the bucket.

        The original filename goes into object metadata (URL-quoted, as
        S3 metadata must be ASCII); the key only carries the sanitized
        storage name.
        """
        key = f"{self._config.user_prefix(user_id)}{storage_name}"
        uploaded_at = datetime.now(timezone.utc)

        params: dict[str, Any] = {
            "Bucket": self._config.bucket_name,
            "Key": key,
            "Body": upload.raw_bytes,
            "ContentType": upload.mime_type,
            "Metadata": {
                "original-name": quote(upload.original_filename),
                "user-id": quote(user_id),
                "upload-date": uploaded_at.isoformat(),
                "file-size": str(upload.size_bytes),
            },
        }
        if self._config.public_read:
            params["ACL"] = "public-read"

        try:
            await asyncio.to_thread(self._s3_client.put_object, **params)
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"key": key, "user_id": user_id, "error": str(e)}
            )
            raise StorageBackendError(
                "Failed to upload file to S3", details=str(e)
            ) from e

        logger.info(
            "Uploaded object",
            extra={
                "key": key,
                "user_id": user_id,
                "size_bytes": upload.size_bytes,
            }
        )

        return MediaDescriptor(
            id=key,
            url=self._config.public_url(key),
            original_name=upload.original_filename,
            size_bytes=upload.size_bytes,
            media_type=media_type_from_mime(upload.mime_type),
            upload_timestamp=uploaded_at,
            format=file_extension(upload.original_filename),
            storage_backend=self.kind,
        )

    async def list_media(self, user_id: str) -> list[MediaDescriptor]:
        """List every object under the user's prefix."""
        prefix = self._config.user_prefix(user_id)

        try:
            response = await asyncio.to_thread(
                self._s3_client.list_objects_v2,
                Bucket=self._config.bucket_name,
                Prefix=prefix,
                MaxKeys=self._config.max_keys,
            )
        except Exception as e:
            logger.error(
                "Failed to list objects",
                extra={"prefix": prefix, "error": str(e)}
            )
            raise StorageBackendError(
                "Failed to list files from S3", details=str(e)
            ) from e

        descriptors = [
            self._to_descriptor(obj)
            for obj in response.get("Contents", [])
            if not obj["Key"].endswith("/")
        ]

        logger.debug(
            "Listed objects",
            extra={"prefix": prefix, "count": len(descriptors)}
        )

        return descriptors

    def _to_descriptor(self, obj: dict[str, Any]) -> MediaDescriptor:
        """Map one list_objects_v2 entry; type is guessed from the extension."""
        key = obj["Key"]
        filename = key.rsplit("/", 1)[-1]
        extension = file_extension(filename)

        return MediaDescriptor(
            id=key,
            url=self._config.public_url(key),
            original_name=filename,
            size_bytes=obj.get("Size") or 0,
            media_type=media_type_from_extension(extension),
            upload_timestamp=obj.get("LastModified") or datetime.now(timezone.utc),
            format=extension,
            storage_backend=self.kind,
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _StoredObject:
    data: bytes
    content_type: str
    last_modified: datetime


class MockS3StorageBackend:
    """
    In-memory bucket for local development and tests.

    Keys and URLs follow the same layout as the real backend so that
    responses look identical to clients.
    """

    kind = StorageBackendKind.BUCKET

    def __init__(self, config: Optional[S3Config] = None) -> None:
        self._config = config or S3Config(
            access_key_id="mock",
            secret_access_key="mock",
            bucket_name="mock-bucket",
        )
        self._objects: dict[str, _StoredObject] = {}
        logger.info("Initialized mock S3 storage backend (in-memory)")

    async def upload_media(
        self,
        upload: UploadedFile,
        user_id: str,
        storage_name: str,
    ) -> MediaDescriptor:
        key = f"{self._config.user_prefix(user_id)}{storage_name}"
        uploaded_at = datetime.now(timezone.utc)
        self._objects[key] = _StoredObject(
            data=upload.raw_bytes,
            content_type=upload.mime_type,
            last_modified=uploaded_at,
        )

        logger.debug(
            "Stored object in mock bucket",
            extra={"key": key, "size_bytes": upload.size_bytes}
        )

        return MediaDescriptor(
            id=key,
            url=self._config.public_url(key),
            original_name=upload.original_filename,
            size_bytes=upload.size_bytes,
            media_type=media_type_from_mime(upload.mime_type),
            upload_timestamp=uploaded_at,
            format=file_extension(upload.original_filename),
            storage_backend=self.kind,
        )

    async def list_media(self, user_id: str) -> list[MediaDescriptor]:
        prefix = self._config.user_prefix(user_id)
        descriptors = []
        for key, stored in self._objects.items():
            if not key.startswith(prefix):
                continue
            filename = key.rsplit("/", 1)[-1]
            extension = file_extension(filename)
            descriptors.append(MediaDescriptor(
                id=key,
                url=self._config.public_url(key),
                original_name=filename,
                size_bytes=len(stored.data),
                media_type=media_type_from_extension(extension),
                upload_timestamp=stored.last_modified,
                format=extension,
                storage_backend=self.kind,
            ))
        return descriptors


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_bucket_backend(
    config: Optional[S3Config] = None,
    mock_mode: bool = False,
) -> StorageBackend:
    """
    Create the bucket backend based on configuration.

    Args:
        config: S3 configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory backend

    Returns:
        StorageBackend implementation (S3 or Mock)
    """
    if mock_mode:
        return MockS3StorageBackend(config)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageBackend(config)
