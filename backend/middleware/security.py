"""
HTTP middleware: security headers, global rate limiting, request size limits and
security-focused response logging.
"""
import re
import time
from typing import Callable
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging

from services.security import security_config, SecurityUtils
from services.rate_limiter import get_rate_limiter

logger = logging.getLogger(__name__)

# Share tokens are credentials and must not land in logs verbatim
SHARE_PATH_PATTERN = re.compile(r"^(/api/share/)([^/]+)")

def redact_path(path: str) -> str:
    return SHARE_PATH_PATTERN.sub(lambda m: m.group(1) + SecurityUtils.mask_token(m.group(2)), path)

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.
    Implements OWASP security header recommendations.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.security_headers = {
            # Prevent MIME type sniffing
            "X-Content-Type-Options": "nosniff",

            # Prevent clickjacking
            "X-Frame-Options": "DENY",

            # Share links must not leak through the Referer header
            "Referrer-Policy": "no-referrer",

            # Strict transport security (HTTPS only)
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains",

            "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",

            "Permissions-Policy": "camera=(), geolocation=(), microphone=()"
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if security_config.enable_security_headers:
            for header, value in self.security_headers.items():
                response.headers[header] = value

            # Remove server header to avoid version disclosure
            if "Server" in response.headers:
                del response.headers["Server"]

        return response

class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Global per-IP request budget. Tighter per-route limits are route dependencies.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.rate_limiter = get_rate_limiter()
        self.window_seconds = 60

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = SecurityUtils.get_client_ip(request)
        max_requests = security_config.rate_limit_requests_per_minute

        rate_result = await self.rate_limiter.check_rate_limit(
            f"global:{client_ip}",
            window_seconds=self.window_seconds,
            max_requests=max_requests
        )

        if not rate_result.allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Too many requests"},
                headers={
                    "X-RateLimit-Limit": str(max_requests),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(rate_result.reset_time.timestamp())),
                    "Retry-After": str(rate_result.retry_after or self.window_seconds)
                }
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(max_requests)
        response.headers["X-RateLimit-Remaining"] = str(rate_result.remaining)
        response.headers["X-RateLimit-Reset"] = str(int(rate_result.reset_time.timestamp()))

        return response

class RequestSizeMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose declared body exceeds the upload limit before
    the body is read. Allows headroom for multipart framing and form fields.
    """

    def __init__(self, app: ASGIApp, overhead_bytes: int = 1024 * 1024):
        super().__init__(app)
        self.overhead_bytes = overhead_bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        max_allowed = security_config.max_upload_bytes + self.overhead_bytes

        if content_length and content_length.isdigit() and int(content_length) > max_allowed:
            SecurityUtils.log_security_event(
                "oversized_request",
                {
                    "content_length": content_length,
                    "max_allowed": max_allowed,
                    "path": redact_path(request.url.path)
                },
                client_ip=SecurityUtils.get_client_ip(request)
            )
            return JSONResponse(
                status_code=413,
                content={"error": "File too large"}
            )

        return await call_next(request)

class SecurityLoggingMiddleware(BaseHTTPMiddleware):
    """
    Security-focused request/response logging middleware.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        if response.status_code >= 400:
            SecurityUtils.log_security_event(
                "http_error_response",
                {
                    "method": request.method,
                    "path": redact_path(request.url.path),
                    "status_code": response.status_code,
                    "process_time": round(process_time, 3),
                    "user_agent": request.headers.get("user-agent", "")
                },
                client_ip=SecurityUtils.get_client_ip(request)
            )

        response.headers["X-Process-Time"] = str(round(process_time, 3))

        return response
