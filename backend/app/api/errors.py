"""Map auth errors and request validation failures to JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.errors import AuthError, RequestValidationFailed, StoreUnavailable

logger = logging.getLogger(__name__)


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "cookie", "header")]
    return ".".join(parts) or "body"


def error_body(exc: AuthError) -> dict:
    body = {"error": exc.code, "detail": exc.message}
    if isinstance(exc, RequestValidationFailed):
        body["errors"] = exc.errors
    if isinstance(exc, StoreUnavailable) and settings.debug and exc.__cause__ is not None:
        body["detail"] += f" ({type(exc.__cause__).__name__})"
    return body


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    if isinstance(exc, StoreUnavailable):
        logger.error("Store unavailable on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"field": _field_name(err.get("loc", ())), "message": err.get("msg", "")} for err in exc.errors()]
    return await auth_error_handler(request, RequestValidationFailed(errors))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    detail = "Internal server error"
    if settings.debug:
        detail += f": {type(exc).__name__}"
    return JSONResponse(status_code=500, content={"error": "InternalError", "detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
