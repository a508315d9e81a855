"""
Security Module for the MindWell API

Implements:
- Rate limiting (IP-based using slowapi)
- Security headers and request ID middleware
- Request size validation
- Exception handlers that never leak internals in production

Configuration via environment variables:
- RATE_LIMIT_PER_MINUTE: Requests per minute per IP (default: 100)
- RATE_LIMIT_ENABLED: 'false' turns the limiter off (default: true)
- MAX_REQUEST_SIZE_MB: Maximum request body size in MB (default: 10)
- ENVIRONMENT: 'production' or 'development' (affects error detail exposure)
- TRUSTED_PROXY_COUNT: Proxies in front of the app that append X-Forwarded-For (default: 1)
"""

import ipaddress
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "100"))
DEFAULT_RATE_LIMIT = f"{RATE_LIMIT_PER_MINUTE}/minute"
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() != "false"

MAX_REQUEST_SIZE_MB = int(os.getenv("MAX_REQUEST_SIZE_MB", "10"))
MAX_REQUEST_SIZE_BYTES = MAX_REQUEST_SIZE_MB * 1024 * 1024

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT.lower() == "production"

TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "1"))

# Stricter limits for login and model-backed endpoints
AUTH_RATE_LIMIT = "5/minute"
CHAT_STREAM_RATE_LIMIT = "20/minute"


# =============================================================================
# Client IP
# =============================================================================

def _is_valid_ip(value: str) -> bool:
    if not value or len(value) > 45:
        return False
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def get_client_ip(request: Request) -> str:
    """
    Return the caller's IP address for rate limiting and audit logs.

    X-Forwarded-For is read from the right: the last TRUSTED_PROXY_COUNT
    entries were appended by our own proxies, the entry before them is the
    client.  Anything further left is client-controlled and ignored.
    Values that are not IP addresses are rejected to keep logs clean.
    """
    direct_ip = request.client.host if request.client else None

    forwarded = [
        part.strip()
        for part in request.headers.get("X-Forwarded-For", "").split(",")
        if part.strip()
    ]
    if forwarded:
        if len(forwarded) > TRUSTED_PROXY_COUNT:
            candidate = forwarded[-(TRUSTED_PROXY_COUNT + 1)]
        else:
            candidate = forwarded[0]
        if _is_valid_ip(candidate):
            return candidate
        logger.warning(f"Invalid IP in X-Forwarded-For header: {candidate[:50]!r}")

    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        if _is_valid_ip(real_ip):
            return real_ip
        logger.warning(f"Invalid X-Real-IP header: {real_ip[:50]!r}")

    return direct_ip if direct_ip and _is_valid_ip(direct_ip) else "unknown"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri="memory://",
    strategy="fixed-window",
    enabled=RATE_LIMIT_ENABLED,
)


def rate_limit_auth():
    """Decorator for login with strict rate limiting."""
    return limiter.limit(AUTH_RATE_LIMIT)


def rate_limit_chat_stream():
    """Decorator for the model-backed streaming endpoint."""
    return limiter.limit(CHAT_STREAM_RATE_LIMIT)


# =============================================================================
# Middleware
# =============================================================================

_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), geolocation=(), microphone=(), payment=(), usb=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an ID, add security headers and log completion.

    SSE responses set their own ``Cache-Control``; it is left untouched.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.time()

        response = await call_next(request)

        for name, value in _SECURITY_HEADERS.items():
            response.headers[name] = value
        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        response.headers["X-Request-ID"] = request_id
        if not response.headers.get("Cache-Control"):
            response.headers["Cache-Control"] = "no-store, private"

        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={time.time() - started:.3f}s "
            f"request_id={request_id} client_ip={get_client_ip(request)}"
        )
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies larger than MAX_REQUEST_SIZE_MB before routing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                too_large = int(content_length) > MAX_REQUEST_SIZE_BYTES
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={
                        "detail": "Invalid Content-Length header",
                        "code": "INVALID_CONTENT_LENGTH",
                    },
                )
            if too_large:
                return JSONResponse(
                    status_code=413,
                    content={
                        "detail": f"Request body too large. Maximum size is {MAX_REQUEST_SIZE_MB}MB.",
                        "code": "REQUEST_TOO_LARGE",
                    },
                )
        return await call_next(request)


# =============================================================================
# Exception Handlers
# =============================================================================

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_headers(request: Request, allowed_origins: list[str], request_id: str) -> dict:
    """Response headers for handler-built errors, CORS included."""
    headers = {"X-Request-ID": request_id}
    origin = request.headers.get("origin", "")
    if origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def create_secure_exception_handler(allowed_origins: list[str]) -> Callable:
    """
    Build the catch-all handler for unhandled exceptions.

    Production responses carry a generic message; development responses
    include the exception text.  The full traceback is always logged.
    """

    async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id(request)
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc} "
            f"request_id={request_id} path={request.url.path} "
            f"method={request.method} client_ip={get_client_ip(request)}",
            exc_info=True,
        )
        if IS_PRODUCTION:
            content = {
                "detail": "An internal server error occurred. Please try again later.",
                "code": "INTERNAL_ERROR",
                "request_id": request_id,
            }
        else:
            content = {
                "detail": str(exc),
                "error_type": type(exc).__name__,
                "request_id": request_id,
            }
        return JSONResponse(
            status_code=500,
            content=content,
            headers=_error_headers(request, allowed_origins, request_id),
        )

    return secure_exception_handler


def create_rate_limit_exceeded_handler(allowed_origins: list[str]) -> Callable:
    """Build the 429 handler with CORS headers and a retry hint."""

    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        request_id = _request_id(request)
        log_security_event("rate_limit", request, {"limit": str(exc.detail)})
        headers = _error_headers(request, allowed_origins, request_id)
        headers["Retry-After"] = "60"
        return JSONResponse(
            status_code=429,
            content={
                "detail": "Rate limit exceeded. Please slow down your requests.",
                "code": "RATE_LIMIT_EXCEEDED",
                "retry_after_seconds": 60,
                "request_id": request_id,
            },
            headers=headers,
        )

    return rate_limit_handler


def create_http_exception_handler(allowed_origins: list[str]) -> Callable:
    """Build the handler for HTTPException (4xx/5xx raised by routes)."""

    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        request_id = _request_id(request)
        if exc.status_code == 401:
            log_security_event("auth_failure", request)
        headers = _error_headers(request, allowed_origins, request_id)
        if exc.headers:
            headers.update(exc.headers)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "request_id": request_id},
            headers=headers,
        )

    return http_exception_handler


# =============================================================================
# Setup
# =============================================================================

def setup_security(app: FastAPI, allowed_origins: list[str]) -> None:
    """
    Install rate limiting, security middleware and exception handlers.

    Args:
        app: The FastAPI application instance
        allowed_origins: CORS origins echoed on handler-built error responses
    """
    app.state.limiter = limiter

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    app.add_exception_handler(
        RateLimitExceeded, create_rate_limit_exceeded_handler(allowed_origins)
    )
    app.add_exception_handler(Exception, create_secure_exception_handler(allowed_origins))
    app.add_exception_handler(HTTPException, create_http_exception_handler(allowed_origins))

    logger.info(
        f"Security middleware configured: "
        f"rate_limit={DEFAULT_RATE_LIMIT} (enabled={RATE_LIMIT_ENABLED}), "
        f"max_request_size={MAX_REQUEST_SIZE_MB}MB, environment={ENVIRONMENT}"
    )


# =============================================================================
# Audit Logging
# =============================================================================

def log_security_event(
    event_type: str,
    request: Request,
    details: Optional[dict] = None,
) -> None:
    """
    Log a security-relevant event for audit purposes.

    Args:
        event_type: e.g. 'auth_failure', 'rate_limit', 'login_failure'
        request: The request object
        details: Optional additional fields
    """
    log_data = {
        "event_type": event_type,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "client_ip": get_client_ip(request),
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        log_data |= details
    logger.warning(f"SECURITY_EVENT: {log_data}")
