"""Pytest fixtures shared by the unit tests."""

from datetime import datetime, timezone
from typing import Optional

import pytest

from src.api import dependencies
from src.core.media.errors import StorageBackendError
from src.core.media.models import (
    MediaDescriptor,
    MediaType,
    StorageBackendKind,
    UploadedFile,
)


BOUNDARY = "----WebKitFormBoundary7MA4YWxkTrZu0gW"


class MultipartBody:
    """
    Builds multipart/form-data bodies byte by byte.

    Written out by hand (rather than through an HTTP client) so tests
    control every header, including malformed ones.
    """

    def __init__(self, boundary: str = BOUNDARY) -> None:
        self.boundary = boundary
        self._parts: list[bytes] = []

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def raw_part(self, headers: list[str], payload: bytes) -> "MultipartBody":
        head = f"--{self.boundary}\r\n" + "".join(f"{h}\r\n" for h in headers) + "\r\n"
        self._parts.append(head.encode("utf-8") + payload + b"\r\n")
        return self

    def field(self, name: str, value: str) -> "MultipartBody":
        return self.raw_part(
            [f'Content-Disposition: form-data; name="{name}"'],
            value.encode("utf-8"),
        )

    def file(
        self,
        name: str,
        filename: str,
        data: bytes,
        content_type: Optional[str] = "application/octet-stream",
    ) -> "MultipartBody":
        headers = [f'Content-Disposition: form-data; name="{name}"; filename="{filename}"']
        if content_type:
            headers.append(f"Content-Type: {content_type}")
        return self.raw_part(headers, data)

    def build(self) -> bytes:
        return b"".join(self._parts) + f"--{self.boundary}--\r\n".encode("ascii")


class FakeBackend:
    """
    Storage backend double that records calls.

    Pass `error` to make every call raise it.
    """

    def __init__(
        self,
        kind: StorageBackendKind = StorageBackendKind.BUCKET,
        items: Optional[list[MediaDescriptor]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.kind = kind
        self.items = items or []
        self.error = error
        self.uploads: list[tuple[UploadedFile, str, str]] = []
        self.listed_users: list[str] = []

    async def upload_media(self, upload: UploadedFile, user_id: str, storage_name: str) -> MediaDescriptor:
        if self.error:
            raise self.error
        self.uploads.append((upload, user_id, storage_name))
        return MediaDescriptor(
            id=f"{user_id}/{storage_name}",
            url=f"https://example.test/{user_id}/{storage_name}",
            original_name=upload.original_filename,
            size_bytes=upload.size_bytes,
            media_type=MediaType.IMAGE,
            upload_timestamp=datetime.now(timezone.utc),
            format="png",
            storage_backend=self.kind,
        )

    async def list_media(self, user_id: str) -> list[MediaDescriptor]:
        self.listed_users.append(user_id)
        if self.error:
            raise self.error
        return list(self.items)


def make_descriptor(
    id: str,
    timestamp: datetime,
    backend: StorageBackendKind = StorageBackendKind.BUCKET,
) -> MediaDescriptor:
    return MediaDescriptor(
        id=id,
        url=f"https://example.test/{id}",
        original_name=id.rsplit("/", 1)[-1],
        size_bytes=10,
        media_type=MediaType.IMAGE,
        upload_timestamp=timestamp,
        format="jpg",
        storage_backend=backend,
    )


@pytest.fixture
def multipart():
    """A fresh multipart body builder."""
    return MultipartBody()


@pytest.fixture
def fake_backend_cls():
    return FakeBackend


@pytest.fixture
def descriptor_factory():
    return make_descriptor


@pytest.fixture
def failing_backend():
    """A media-service backend whose every call fails."""
    return FakeBackend(
        kind=StorageBackendKind.MEDIA_SERVICE,
        error=StorageBackendError("Failed to list files from Cloudinary", details="rate limited"),
    )


@pytest.fixture(autouse=True)
def reset_mock_backends(monkeypatch):
    """Mock-mode backends are process-wide; give every test empty ones."""
    monkeypatch.setattr(dependencies, "_mock_bucket_backend", None)
    monkeypatch.setattr(dependencies, "_mock_media_service_backend", None)
