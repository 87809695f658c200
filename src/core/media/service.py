"""
Upload and listing orchestration.

MediaService is the one implementation of "upload a file" and "list a
user's media". Which backends it talks to is decided at construction
time: exactly one for uploads, any number for listings.
"""

import asyncio
import logging
from typing import Optional, Sequence

from .errors import MissingFileError, MissingParameterError, UnsupportedMediaTypeError
from .models import MediaDescriptor, MediaListing, ParsedForm
from .naming import build_storage_name, is_allowed_mime_type

logger = logging.getLogger(__name__)

FILE_FIELD = "file"
USER_ID_FIELD = "userId"
DEFAULT_USER_ID = "default-user"


class MediaService:
    """
    Stateless media orchestration over injected storage backends.

    Backends are anything implementing the StorageBackend protocol from
    the infrastructure layer; this module never imports a vendor SDK.
    """

    def __init__(
        self,
        upload_backend,
        listing_backends: Sequence = (),
        default_user_id: str = DEFAULT_USER_ID,
    ) -> None:
        self._upload_backend = upload_backend
        self._listing_backends = list(listing_backends) or [upload_backend]
        self._default_user_id = default_user_id

    @property
    def listing_backends(self) -> list:
        return list(self._listing_backends)

    async def upload(self, form: ParsedForm) -> tuple[str, MediaDescriptor]:
        """
        Validate a decoded upload form and store its file.

        Returns the user id the file was stored under together with the
        backend's descriptor. Validation failures are raised before any
        backend call; backend failures propagate as StorageBackendError.
        """
        upload = form.files.get(FILE_FIELD)
        if upload is None:
            raise MissingFileError(FILE_FIELD)

        if not is_allowed_mime_type(upload.mime_type):
            logger.info(
                "Rejected upload with unsupported type",
                extra={"mime_type": upload.mime_type, "upload_filename": upload.original_filename}
            )
            raise UnsupportedMediaTypeError(upload.mime_type)

        user_id = form.fields.get(USER_ID_FIELD) or self._default_user_id
        storage_name = build_storage_name(upload.original_filename)

        logger.info(
            "Upload started",
            extra={
                "user_id": user_id,
                "upload_filename": upload.original_filename,
                "mime_type": upload.mime_type,
                "size_bytes": upload.size_bytes,
                "backend": self._upload_backend.kind.value,
            }
        )

        descriptor = await self._upload_backend.upload_media(
            upload=upload,
            user_id=user_id,
            storage_name=storage_name,
        )

        return user_id, descriptor

    async def list_media(self, user_id: Optional[str]) -> MediaListing:
        """
        List a user's media across every listing backend, newest first.

        Backends are queried concurrently and all of them are awaited
        before merging. A backend that fails contributes nothing and is
        counted as 0 in sources; it never fails the whole listing.
        """
        if not user_id:
            raise MissingParameterError(USER_ID_FIELD)

        results = await asyncio.gather(
            *(backend.list_media(user_id) for backend in self._listing_backends),
            return_exceptions=True,
        )

        listing = MediaListing()
        merged: list[MediaDescriptor] = []
        seen: set[str] = set()

        for backend, result in zip(self._listing_backends, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    "Listing backend failed, continuing without it",
                    extra={
                        "backend": backend.kind.value,
                        "user_id": user_id,
                        "error": str(result),
                    }
                )
                listing.sources[backend.kind] = 0
                continue

            # counted after dropping ids an earlier backend already returned
            kept = unique_by_id(result, seen)
            listing.sources[backend.kind] = len(kept)
            merged.extend(kept)

        listing.items = sort_newest_first(merged)

        logger.info(
            "Listed media",
            extra={
                "user_id": user_id,
                "count": listing.count,
                "sources": {kind.value: count for kind, count in listing.sources.items()},
            }
        )

        return listing


def unique_by_id(
    descriptors: Sequence[MediaDescriptor],
    seen: Optional[set[str]] = None,
) -> list[MediaDescriptor]:
    """
    Drop repeated ids, keeping the first occurrence.

    Pass the same `seen` set across calls to dedupe over several batches.
    """
    if seen is None:
        seen = set()
    unique = []
    for descriptor in descriptors:
        if descriptor.id in seen:
            continue
        seen.add(descriptor.id)
        unique.append(descriptor)
    return unique


def sort_newest_first(descriptors: Sequence[MediaDescriptor]) -> list[MediaDescriptor]:
    return sorted(descriptors, key=lambda d: d.upload_timestamp, reverse=True)
