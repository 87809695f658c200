"""
Domain models for uploaded and stored media.

These models have no dependencies on FastAPI, boto3 or Cloudinary. Each
storage backend translates its own response shape into a MediaDescriptor,
so the rest of the application only ever sees one record type.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class MediaType(Enum):
    """Broad media category, derived from MIME type or file extension."""
    IMAGE = "image"
    VIDEO = "video"
    UNKNOWN = "unknown"


class StorageBackendKind(Enum):
    """Which external provider holds an object."""
    BUCKET = "bucket"
    MEDIA_SERVICE = "media-service"


@dataclass
class UploadedFile:
    """
    A file part recovered from a multipart body.

    Lives only for the duration of one request. size_bytes is measured
    on the raw payload, never on a decoded string.
    """
    original_filename: str
    mime_type: str
    raw_bytes: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.raw_bytes)


@dataclass
class ParsedForm:
    """Fields and files decoded from one multipart/form-data body."""
    fields: dict[str, str] = field(default_factory=dict)
    files: dict[str, UploadedFile] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.fields and not self.files


@dataclass(frozen=True)
class MediaDescriptor:
    """
    Normalized description of one stored media object.

    Frozen because a descriptor is a value: it is built once from a
    backend response and only ever serialized afterwards.
    """
    id: str
    url: str
    original_name: str
    size_bytes: int
    media_type: MediaType
    upload_timestamp: datetime
    format: str
    storage_backend: StorageBackendKind

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Descriptor id cannot be empty")
        if self.size_bytes < 0:
            raise ValueError("Descriptor size cannot be negative")
        # Naive timestamps from a backend are taken to be UTC so that
        # descriptors from different backends stay comparable.
        if self.upload_timestamp.tzinfo is None:
            object.__setattr__(
                self,
                "upload_timestamp",
                self.upload_timestamp.replace(tzinfo=timezone.utc),
            )


@dataclass
class MediaListing:
    """Merged listing across backends, newest first."""
    items: list[MediaDescriptor] = field(default_factory=list)
    sources: dict[StorageBackendKind, int] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.items)
