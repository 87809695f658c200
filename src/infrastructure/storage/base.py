"""
Storage backend protocol.

Both the S3 bucket and the Cloudinary media service implement this
protocol, so the media service can upload to one and list from several
without knowing which vendor it is talking to.
"""

from typing import Protocol

from ...core.media.models import MediaDescriptor, StorageBackendKind, UploadedFile


class StorageBackend(Protocol):
    """
    An external provider that stores uploaded media.

    Implementations translate their native response shape into
    MediaDescriptor and wrap SDK failures in StorageBackendError.
    """

    kind: StorageBackendKind

    async def upload_media(
        self,
        upload: UploadedFile,
        user_id: str,
        storage_name: str,
    ) -> MediaDescriptor:
        """Store the file under the user's namespace and describe it."""
        ...

    async def list_media(self, user_id: str) -> list[MediaDescriptor]:
        """Describe every object stored under the user's namespace."""
        ...
