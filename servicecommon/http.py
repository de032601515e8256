"""
HTTP gateway plumbing shared by both FastAPI apps: error mapping, panic
recovery and access logging.
"""

import time
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from servicecommon.errors import DEFAULT_MESSAGES, ErrorKind, ServiceError
from servicecommon.logging import get_logger

logger = get_logger("servicecommon.http")


def error_body(message: str) -> Dict[str, str]:
    return {"error": message}


def format_validation_error(error: Dict[str, Any]) -> str:
    loc = [str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path", "header")]
    field = loc[-1] if loc else "request"
    ctx = error.get("ctx") or {}
    kind = error.get("type", "")
    if kind == "missing":
        return f"{field} is required"
    if kind == "string_too_short":
        return f"{field} must be at least {ctx.get('min_length')} characters"
    if kind == "string_too_long":
        return f"{field} must be at most {ctx.get('max_length')} characters"
    if kind in ("greater_than_equal", "less_than_equal"):
        return f"{field} is out of range"
    return f"{field} is invalid"


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.kind == ErrorKind.INTERNAL:
        logger.error("Service error", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = format_validation_error(errors[0]) if errors else DEFAULT_MESSAGES[ErrorKind.INVALID_INPUT]
    return JSONResponse(status_code=400, content=error_body(message))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # unknown routes and disallowed methods raised by the router itself
    return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)),
                        headers=getattr(exc, "headers", None))


async def recover_and_log(request: Request, call_next):
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error", method=request.method, path=request.url.path)
        response = JSONResponse(
            status_code=500, content=error_body(DEFAULT_MESSAGES[ErrorKind.INTERNAL])
        )
    logger.info(
        "Request handled",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return response


def install_gateway(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.middleware("http")(recover_and_log)
