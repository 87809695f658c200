"""
Health check endpoints.

- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (is every enabled backend configured?)

Readiness does not call the storage providers; a listing already
degrades per backend, so an unreachable provider is not a reason to
stop routing traffic here.
"""

import logging
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None
    details: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Liveness check - is the process alive?"""
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "upload_backend": settings.upload_backend,
            "listing_backends": settings.listing_backends_list,
            "mock_mode": {
                "bucket": settings.s3_mock_mode,
                "media-service": settings.cloudinary_mock_mode,
            },
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 when every enabled backend has credentials, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(settings: SettingsDep):
    """Readiness check - is the configuration complete?"""
    missing_fields = settings.validate_required_fields()

    checks = [
        ReadinessCheck(
            name="configuration",
            status="error" if missing_fields else "ok",
            error=f"Missing required fields: {', '.join(missing_fields)}" if missing_fields else None,
        )
    ]
    for backend in settings.enabled_backends:
        mocked = settings.s3_mock_mode if backend == "bucket" else settings.cloudinary_mock_mode
        checks.append(ReadinessCheck(
            name=backend,
            status="ok",
            details="mock mode" if mocked else None,
        ))

    response = ReadinessResponse(
        status="not_ready" if missing_fields else "ready",
        version=__version__,
        checks=checks,
    )

    if missing_fields:
        logger.warning(
            "Readiness check failed",
            extra={"missing_fields": missing_fields}
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response
