"""Permissive CORS middleware with body-less pre-flight responses."""

from __future__ import annotations

from typing import Sequence

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp


class PermissiveCorsMiddleware(BaseHTTPMiddleware):
    """Echo CORS headers on every response and answer OPTIONS with 204."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        allow_origins: Sequence[str] = ("*",),
        allow_methods: Sequence[str] = ("POST", "GET", "OPTIONS"),
        allow_headers: Sequence[str] = ("Content-Type", "Authorization"),
    ) -> None:
        super().__init__(app)
        self._allow_origins = list(allow_origins)
        self._allow_methods = ", ".join(allow_methods)
        self._allow_headers = ", ".join(allow_headers)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        headers = self._cors_headers(request.headers.get("origin"))

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response

    def _cors_headers(self, origin: str | None) -> dict[str, str]:
        if "*" in self._allow_origins:
            allow_origin = "*"
        elif origin and origin in self._allow_origins:
            allow_origin = origin
        else:
            allow_origin = self._allow_origins[0] if self._allow_origins else ""

        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": self._allow_methods,
            "Access-Control-Allow-Headers": self._allow_headers,
        }
        if allow_origin != "*":
            headers["Vary"] = "Origin"
        return headers
