"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.cors import HandlerCORSMiddleware, collect_route_methods
from .api.routes import health, media, signature
from .config.settings import Settings, get_settings
from .core.media.errors import MediaError, MethodNotAllowedError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs the backend setup on startup and warns about missing
    credentials. Missing credentials are not fatal: listings degrade per
    backend and uploads fail with a backend error.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Memories API starting",
        extra={
            "version": __version__,
            "upload_backend": settings.upload_backend,
            "listing_backends": settings.listing_backends_list,
            "mock_mode": {
                "bucket": settings.s3_mock_mode,
                "media-service": settings.cloudinary_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Memories API shutting down")


def error_response(exc: MediaError, settings: Settings) -> JSONResponse:
    """
    Render a MediaError as {error, details}.

    Server-side failures also carry the traceback when debug is on.
    """
    content = {"error": exc.message}
    if exc.details:
        content["details"] = exc.details
    if settings.debug and exc.status_code >= 500:
        content["stack"] = "".join(traceback.format_exception(exc))
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Pass settings explicitly to build an app with a specific
    configuration (tests do this); they then replace get_settings for
    every dependency as well.
    """
    explicit_settings = settings is not None
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Upload photos and videos to cloud storage and list them per user.

        ## Endpoints

        - `POST /api/upload`: multipart/form-data with `file` and optional `userId`
        - `GET /api/get-photos?userId=...`: a user's media, newest first
        - `GET /api/sign-upload`: signature for a direct Cloudinary upload
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    if explicit_settings:
        app.dependency_overrides[get_settings] = lambda: settings

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        media.router,
        prefix="/api",
        tags=["Media"],
    )

    app.include_router(
        signature.router,
        prefix="/api",
        tags=["Media"],
    )

    # CORS headers per handler, computed from the routes registered above
    app.add_middleware(
        HandlerCORSMiddleware,
        route_methods=collect_route_methods(app.routes, prefix="/api"),
        allow_origin=settings.cors_origins,
    )

    @app.exception_handler(MediaError)
    async def media_error_handler(request: Request, exc: MediaError):
        """Validation errors are 4xx, backend failures 500, all as {error, details}."""
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
                "error": exc.message,
                "details": exc.details,
            }
        )
        return error_response(exc, settings)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Keep framework errors (404, 405) in the same {error} envelope."""
        if exc.status_code == 405:
            allowed = (exc.headers or {}).get("Allow", "")
            response = error_response(MethodNotAllowedError(request.method, allowed), settings)
            if allowed:
                response.headers["Allow"] = allowed
            return response

        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.api_title,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": __version__,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
