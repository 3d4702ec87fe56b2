"""Request ID middleware — correlate every auth.* log line with a request.

Learn: A caller may pass its own X-Request-ID (for distributed tracing),
but that value ends up in audit logs next to login failures and
revocations. Only short, plain IDs are trusted; anything else (newlines,
quotes, kilobytes of junk) is replaced with a fresh UUID so a client
can't forge or bloat log lines.

One `http.request` line is written per request with the status and
duration, after the handler's own log lines.
"""

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

_TRUSTED_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")


def resolve_request_id(incoming: str | None) -> str:
    if incoming and _TRUSTED_ID.fullmatch(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request ID into structlog and echo it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response: Response = await call_next(request)
        logger.info(
            "http.request",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        response.headers["X-Request-ID"] = request_id
        return response
