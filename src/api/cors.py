"""
Per-handler CORS headers.

Starlette's CORSMiddleware applies one method list to the whole app and
only answers real preflights. Each API handler here advertises its own
methods, and any OPTIONS request to it gets an empty 200, so this small
middleware replaces it for the /api routes.
"""

import logging
from typing import Callable, Iterable

from fastapi import Request, Response
from fastapi.routing import APIRoute
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import BaseRoute

logger = logging.getLogger(__name__)


def collect_route_methods(routes: Iterable[BaseRoute], prefix: str = "/api") -> dict[str, str]:
    """
    Map each API path to its Access-Control-Allow-Methods value.

    OPTIONS is always listed, since the middleware answers it.
    """
    methods: dict[str, set[str]] = {}
    for route in routes:
        if not isinstance(route, APIRoute) or not route.path.startswith(prefix):
            continue
        methods.setdefault(route.path.rstrip("/"), set()).update(route.methods)

    return {
        path: ", ".join(sorted(allowed - {"OPTIONS", "HEAD"}) + ["OPTIONS"])
        for path, allowed in methods.items()
    }


class HandlerCORSMiddleware(BaseHTTPMiddleware):
    """Adds CORS headers to API responses and answers OPTIONS directly."""

    def __init__(
        self,
        app,
        route_methods: dict[str, str],
        allow_origin: str = "*",
        allow_headers: str = "Content-Type",
    ):
        """
        Initialize middleware.

        Args:
            app: FastAPI application
            route_methods: Path -> Access-Control-Allow-Methods value
            allow_origin: Access-Control-Allow-Origin value
            allow_headers: Access-Control-Allow-Headers value
        """
        super().__init__(app)
        self.route_methods = route_methods
        self.allow_origin = allow_origin
        self.allow_headers = allow_headers

    def headers_for(self, path: str) -> dict[str, str] | None:
        allowed = self.route_methods.get(path.rstrip("/"))
        if allowed is None:
            return None
        return {
            "Access-Control-Allow-Origin": self.allow_origin,
            "Access-Control-Allow-Methods": allowed,
            "Access-Control-Allow-Headers": self.allow_headers,
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        headers = self.headers_for(request.url.path)
        if headers is None:
            return await call_next(request)

        if request.method == "OPTIONS":
            return Response(status_code=200, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
