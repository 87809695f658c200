"""
Media upload and listing logic.

Contains the domain models, the multipart decoder and the service that
orchestrates uploads and listings over storage backends.
"""

from .errors import (
    MediaError,
    MethodNotAllowedError,
    MissingBoundaryError,
    MissingFileError,
    MissingParameterError,
    PayloadTooLargeError,
    StorageBackendError,
    UnsupportedMediaTypeError,
)
from .models import (
    MediaDescriptor,
    MediaListing,
    MediaType,
    ParsedForm,
    StorageBackendKind,
    UploadedFile,
)
from .multipart import extract_boundary, parse_multipart
from .service import MediaService

__all__ = [
    "MediaError",
    "MethodNotAllowedError",
    "MissingBoundaryError",
    "MissingFileError",
    "MissingParameterError",
    "PayloadTooLargeError",
    "StorageBackendError",
    "UnsupportedMediaTypeError",
    "MediaDescriptor",
    "MediaListing",
    "MediaType",
    "ParsedForm",
    "StorageBackendKind",
    "UploadedFile",
    "extract_boundary",
    "parse_multipart",
    "MediaService",
]
