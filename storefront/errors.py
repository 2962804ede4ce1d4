"""Exception handlers that render every failure in one JSON envelope."""

from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logger import logger
from .schemas import ErrorCode, ErrorResponse


def error_body(
    request: Request,
    status_code: int,
    error: dict | str,
) -> dict:
    """Build the envelope: statusCode, timestamp, path, method, error."""
    envelope = ErrorResponse(
        status_code=status_code,
        timestamp=datetime.now(timezone.utc),
        path=request.url.path,
        method=request.method,
        error=error,
    )
    return envelope.model_dump(mode="json", by_alias=True)


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    """JSONResponse carrying the envelope, for callers outside the exception handlers (middleware)."""
    return JSONResponse(
        status_code=status_code,
        content=error_body(
            request,
            status_code,
            {"code": code, "message": message, "details": details or {}},
        ),
        headers=headers,
    )


def _format_validation_error(err: dict) -> str:
    # Drop the "body"/"query"/"path" prefix from the location
    loc = [str(part) for part in err.get("loc", ())[1:]]
    field = ".".join(loc) if loc else "request"
    return f"{field}: {err.get('msg', 'invalid value')}"


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap HTTPException details (dict or string) in the envelope."""
    if exc.status_code >= 500:
        logger.error(f"HTTP Error: {exc.status_code} - {request.method} {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or missing input: 400 with one message per offending field."""
    messages = [_format_validation_error(err) for err in exc.errors()]
    logger.debug(f"Validation failed for {request.method} {request.url.path}: {messages}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(
            request,
            status.HTTP_400_BAD_REQUEST,
            {
                "code": ErrorCode.VALIDATION_ERROR,
                "message": "Request validation failed",
                "details": {"errors": messages},
            },
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback, answer 500 without leaking internals."""
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc!r}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"code": ErrorCode.INTERNAL_ERROR, "message": "Internal Server Error", "details": {}},
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
