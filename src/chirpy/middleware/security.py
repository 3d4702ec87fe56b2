"""Security headers for a JSON-only token API.

Learn: Every body this service returns is either a token or an error, so
responses are locked down harder than a general web app's:
- Cache-Control / Pragma: tokens must never sit in a browser or proxy cache
- Content-Security-Policy: nothing here is meant to render as a page
- X-Content-Type-Options, X-Frame-Options, Referrer-Policy: the usual set
- Strict-Transport-Security: only on HTTPS connections
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

TOKEN_API_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}

HSTS = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp TOKEN_API_HEADERS onto every response, errors included."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(TOKEN_API_HEADERS)
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS
        return response
