"""
HTTP middleware for the recovery service
Handles security headers and request logging
"""
from typing import Callable, Iterable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from delegated_recovery.core.logger import get_logger


def build_security_headers(form_action_origins: Iterable[str] = ()) -> dict[str, str]:
    """
    Security headers for every response.

    Save-token pages post the signed token straight to the recovery
    provider, so its origin has to be allowed as a form target.
    """
    form_action = " ".join(["'self'", *form_action_origins])
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "no-referrer",
        "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
        "Cache-Control": "no-store",
        "Content-Security-Policy": (
            "default-src 'self'; "
            "style-src 'self'; "
            "img-src 'self' data:; "
            f"form-action {form_action}; "
            "frame-ancestors 'none';"
        ),
    }


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    def __init__(self, app, form_action_origins: Iterable[str] = ()):
        super().__init__(app)
        self.headers = build_security_headers(form_action_origins)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for header, value in self.headers.items():
            # Routes may set their own caching policy
            if header == "Cache-Control" and header in response.headers:
                continue
            response.headers[header] = value

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log requests for audit purposes. Query strings are left out since they carry token IDs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger = get_logger("requests")

        client_ip = request.client.host if request.client else "unknown"
        logger.info(f"{request.method} {request.url.path} - IP: {client_ip}")

        response = await call_next(request)

        logger.info(f"{request.method} {request.url.path} - Status: {response.status_code}")

        return response
