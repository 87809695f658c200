"""
Error taxonomy for the media API.

Each error carries the HTTP status it maps to, so the application layer
can render every failure with a single exception handler.
"""

from typing import Optional


class MediaError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 400

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class MissingBoundaryError(MediaError):
    """Content-Type header has no boundary parameter."""

    def __init__(self, message: str = "No multipart boundary found in Content-Type header") -> None:
        super().__init__(message)


class MissingFileError(MediaError):
    """No file part was supplied under the expected field name."""

    def __init__(self, field_name: str = "file") -> None:
        super().__init__(f"No file found in form field '{field_name}'")
        self.field_name = field_name


class MissingParameterError(MediaError):
    """A required request parameter is absent."""

    def __init__(self, parameter: str) -> None:
        super().__init__(f"{parameter} is required")
        self.parameter = parameter


class UnsupportedMediaTypeError(MediaError):
    """Uploaded file is neither an image nor a video."""

    def __init__(self, mime_type: str) -> None:
        super().__init__(
            "Only image and video files are supported",
            details=f"Received content type: {mime_type or 'unknown'}",
        )
        self.mime_type = mime_type


class PayloadTooLargeError(MediaError):
    """Request body exceeds the configured upload limit."""

    status_code = 413

    def __init__(self, max_size_mb: int) -> None:
        super().__init__(f"Upload too large. Maximum size: {max_size_mb}MB")
        self.max_size_mb = max_size_mb


class StorageBackendError(MediaError):
    """A storage backend call failed. details holds the backend's own message."""

    status_code = 500


class MethodNotAllowedError(MediaError):
    """HTTP method not supported by the handler."""

    status_code = 405

    def __init__(self, method: str, allowed: str = "") -> None:
        message = f"Method {method} not allowed"
        if allowed:
            message = f"{message}. Supported: {allowed}"
        super().__init__(message)
        self.method = method
        self.allowed = allowed
