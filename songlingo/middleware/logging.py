"""Per-request access log with learner id and request correlation."""

from __future__ import annotations

import logging
import time
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from songlingo.utils import AuthenticationError, decode_access_token

logger = logging.getLogger("songlingo.middleware.structured")

REQUEST_ID_HEADER = "X-Request-ID"

_COLORS = {2: "\u001b[32m", 4: "\u001b[33m", 5: "\u001b[31m"}
_DEFAULT_COLOR = "\u001b[36m"
_RESET = "\u001b[0m"


def _learner_id(request: Request) -> Optional[str]:
    """Best-effort subject of the bearer token; auth itself happens later."""

    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    try:
        return decode_access_token(token).sub
    except AuthenticationError:
        return None


def format_access_line(
    *,
    request_id: str,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    learner_id: Optional[str],
) -> str:
    color = _COLORS.get(status_code // 100, _DEFAULT_COLOR)
    return (
        f"{color}request_id={request_id} {method} {path} status={status_code} "
        f"duration_ms={duration_ms:.1f} user_id={learner_id or '-'}{_RESET}"
    )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one coloured line per request and echo the request id."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        learner_id = _learner_id(request)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                format_access_line(
                    request_id=request_id,
                    method=request.method,
                    path=request.url.path,
                    status_code=500,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    learner_id=learner_id,
                )
            )
            raise

        logger.info(
            format_access_line(
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=(time.perf_counter() - started) * 1000,
                learner_id=learner_id,
            )
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
