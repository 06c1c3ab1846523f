"""Response envelopes and the exception handlers that render errors into them."""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from thorbis.core.exceptions import ApiError

logger = logging.getLogger(__name__)


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def success_response(
    data: Any,
    meta: dict | None = None,
    status_code: int = status.HTTP_200_OK,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = {"success": True, "data": data, "meta": meta or {}, "timestamp": timestamp()}
    return JSONResponse(body, status_code=status_code, headers=headers)


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: Any = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    body = {"success": False, "error": error, "timestamp": timestamp()}
    return JSONResponse(body, status_code=status_code)


# ============== Exception Handlers ==============

async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log("%s %s -> %s %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
    return error_response(exc.code, exc.message, exc.status_code, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body") or "body",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    logger.info("%s %s -> validation failed: %s", request.method, request.url.path, details)
    return error_response("VALIDATION_ERROR", "Invalid request data", status.HTTP_400_BAD_REQUEST, details)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    started = getattr(request.state, "started", None)
    duration = f"{elapsed_ms(started):.2f}ms" if started else "unknown"
    logger.exception("%s %s failed after %s", request.method, request.url.path, duration)
    return error_response("INTERNAL_ERROR", "An unexpected error occurred", status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
