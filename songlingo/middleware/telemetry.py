"""Request metrics middleware."""

from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from songlingo.telemetry import observe_request

_UNTRACKED_PATHS = frozenset({"/metrics", "/health"})


def _route_label(request: Request) -> str:
    """Templated route path once routing has run, so ids never become labels."""

    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Collect request counts and latency for Prometheus."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in _UNTRACKED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            observe_request(
                request.method,
                _route_label(request),
                status_code,
                time.perf_counter() - started,
            )
