"""
Storage naming and media classification helpers.

Storage names must be unique per upload and safe to use as an object
key or public id on any backend, while the client's original filename
is kept separately on the descriptor.
"""

import re
import time
from typing import Optional
from uuid import uuid4

from .models import MediaType

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")

ALLOWED_MIME_PREFIXES = ("image/", "video/")

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "bmp", "svg"})
VIDEO_EXTENSIONS = frozenset({"mp4", "avi", "mov", "wmv", "flv", "webm", "mkv"})


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9.-] with an underscore."""
    return _UNSAFE_CHARS.sub("_", filename)


def build_storage_name(
    filename: str,
    timestamp_ms: Optional[int] = None,
    token: Optional[str] = None,
) -> str:
    """
    Build a collision-resistant storage name for an upload.

    Format: {epoch millis}_{8 hex chars}_{sanitized filename}
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    if token is None:
        token = uuid4().hex[:8]
    return f"{timestamp_ms}_{token}_{sanitize_filename(filename)}"


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot, or empty string."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def strip_extension(filename: str) -> str:
    if "." not in filename:
        return filename
    return filename.rsplit(".", 1)[0]


def is_allowed_mime_type(mime_type: str) -> bool:
    return mime_type.lower().startswith(ALLOWED_MIME_PREFIXES)


def media_type_from_mime(mime_type: str) -> MediaType:
    prefix = mime_type.lower().split("/", 1)[0]
    if prefix == "image":
        return MediaType.IMAGE
    if prefix == "video":
        return MediaType.VIDEO
    return MediaType.UNKNOWN


def media_type_from_extension(extension: str) -> MediaType:
    """Guess the media type of a stored object from its extension."""
    extension = extension.lower()
    if extension in IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    if extension in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    return MediaType.UNKNOWN
