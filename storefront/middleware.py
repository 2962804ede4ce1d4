"""HTTP middleware for rate limiting, request handling, logging, and security."""

from fastapi import Request
import time
import uuid
from .config import settings
from .errors import error_response
from .logger import logger
from .rate_limit import client_id_from_request
from .schemas import ErrorCode

# Import will be set by main.py to avoid circular dependency
shutdown_manager = None


def set_shutdown_manager(manager):
    """Set the shutdown manager instance (called from main.py)."""
    global shutdown_manager
    shutdown_manager = manager


# ==================== Graceful Shutdown Middleware ====================

async def graceful_shutdown_middleware(request: Request, call_next):
    """Track active requests and reject new requests during shutdown."""
    if shutdown_manager and shutdown_manager.is_shutting_down:
        logger.warning(
            f"Rejecting request {request.method} {request.url.path} - service is shutting down"
        )
        return error_response(
            request,
            503,
            ErrorCode.SERVICE_UNAVAILABLE,
            "Service is shutting down - please retry with another instance",
            headers={"Retry-After": "10"},
        )

    if shutdown_manager:
        shutdown_manager.request_started()

    try:
        return await call_next(request)
    finally:
        if shutdown_manager:
            shutdown_manager.request_finished()


# ==================== Rate Limit Middleware ====================

async def rate_limit_middleware(request: Request, call_next):
    """Count the request against its client's window; 429 once the cap is exceeded."""
    limiter = request.app.state.rate_limiter
    client_id = client_id_from_request(request)
    result = limiter.check(client_id)

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": result.reset_at_iso,
    }

    if not result.allowed:
        logger.warning(
            f"Rate limit exceeded for client {client_id} on {request.method} {request.url.path} "
            f"- retry in {result.retry_after}s"
        )
        headers["Retry-After"] = str(result.retry_after)
        return error_response(
            request,
            429,
            ErrorCode.RATE_LIMIT_EXCEEDED,
            "Too many requests. Please try again later.",
            details={"retryAfter": result.retry_after},
            headers=headers,
        )

    response = await call_next(request)
    response.headers.update(headers)
    return response


# ==================== Request ID Middleware ====================

async def add_request_id_middleware(request: Request, call_next):
    """Add unique request ID to each request for tracing across logs."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


# ==================== Request Logging Middleware ====================

async def request_logging_middleware(request: Request, call_next):
    """Log method, path, status and duration once the response is ready."""
    start_time = time.perf_counter()
    request_id = getattr(request.state, "request_id", "unknown")

    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.error(
            f"[{request_id}] {request.method} {request.url.path} - "
            f"Error: {str(e)} - {duration_ms:.0f}ms",
            exc_info=True
        )
        raise

    duration_ms = (time.perf_counter() - start_time) * 1000
    message = (
        f"[{request_id}] {request.method} {request.url.path} "
        f"{response.status_code} {duration_ms:.0f}ms"
    )
    if response.status_code >= 500:
        logger.error(message)
    elif response.status_code >= 400:
        logger.warning(message)
    else:
        logger.info(message)
    return response


# ==================== Security Headers Middleware ====================

async def security_headers_middleware(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"

    # Enforce HTTPS in production
    if settings.APP_ENV in ("prod", "production"):
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    # Content Security Policy (allows CDN resources for Swagger UI)
    response.headers["Content-Security-Policy"] = (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://cdn.jsdelivr.net; "
        "font-src 'self' https://cdn.jsdelivr.net"
    )
    response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

    return response
