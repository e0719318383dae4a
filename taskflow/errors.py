"""Exception handlers rendering every failure in the response envelope.

Services and dependencies raise ``HTTPException`` whose ``detail`` is
``{"error": ErrorCode, "message": str, "details": dict}``; the handlers
here turn those, request validation errors, store outages and unexpected
exceptions into ``{"success": false, "message": ..., "errors"?: [...]}``.
"""

import traceback

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .logger import logger

STORE_RETRY_AFTER_SECONDS = 5


def api_error(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
    headers: dict | None = None,
) -> HTTPException:
    """Build an HTTPException in the application's detail format."""
    return HTTPException(
        status_code=status_code,
        detail={"error": code, "message": message, "details": details or {}},
        headers=headers,
    )


def error_body(message: str, errors: list[dict] | None = None, **extra) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return body


def _field_name(loc: tuple) -> str:
    # ("body", "tags", 0) -> "tags.0"; a bare ("body",) means the body itself
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


def _clean_message(msg: str) -> str:
    return msg.removeprefix("Value error, ")


# ==================== Handlers ====================


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message", "Request failed")
    elif exc.status_code == 404:
        message = f"Route not found: {request.url.path}"
    else:
        message = str(detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        logger.debug(f"Malformed JSON body on {request.method} {request.url.path}")
        return JSONResponse(status_code=400, content=error_body("Malformed JSON body"))

    errors = [
        {"field": _field_name(tuple(err.get("loc", ()))), "message": _clean_message(err.get("msg", ""))}
        for err in exc.errors()
    ]
    logger.debug(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content=error_body("Validation failed", errors))


async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(
        f"[{request_id}] Store unavailable during {request.method} {request.url.path}: {exc}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=503,
        content=error_body("Database temporarily unavailable. Please retry."),
        headers={"Retry-After": str(STORE_RETRY_AFTER_SECONDS)},
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = JSONResponse(
        status_code=429,
        content=error_body("Too many requests, please try again later."),
    )
    # slowapi's own handler attaches Retry-After and X-RateLimit-* headers; keep those, swap the body
    if hasattr(request.app.state, "limiter") and hasattr(request.state, "view_rate_limit"):
        limited = _rate_limit_exceeded_handler(request, exc)
        for key, value in limited.headers.items():
            if key not in ("content-length", "content-type"):
                response.headers[key] = value
    return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(
        f"[{request_id}] Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    extra = {}
    if settings.APP_ENV == "dev":
        extra["stack"] = "".join(traceback.format_exception(exc))
    return JSONResponse(status_code=500, content=error_body("Internal Server Error", **extra))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(OperationalError, store_unavailable_handler)
    app.add_exception_handler(PoolTimeoutError, store_unavailable_handler)
    app.add_exception_handler(TimeoutError, store_unavailable_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
