from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from rspoassist.apps.api.response import error_response, get_request_id
from rspoassist.core.errors import (
    DatabaseError,
    GenerationError,
    OcrError,
    ProviderConfigError,
    RspoAssistError,
    VertexAuthError,
    VertexTimeoutError,
)


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    402: "TOKEN_LIMIT_REACHED",
    403: "FEATURE_NOT_ENABLED",
    404: "NOT_FOUND",
    409: "CONFLICT",
    413: "UPLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "AI_SERVICE_ERROR",
    503: "SERVICE_UNAVAILABLE",
    504: "VERTEX_TIMEOUT",
}


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # HTTPException details are either a message string or a {code, message, ...} dict.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


def map_domain_error(exc: Exception) -> tuple[int, str, str]:
    # Order matters: OcrError is a GenerationError.
    if isinstance(exc, OcrError):
        return 422, "OCR_FAILED", str(exc)
    if isinstance(exc, ProviderConfigError):
        return 503, "VERTEX_CONFIG_MISSING", str(exc)
    if isinstance(exc, VertexAuthError):
        return 502, "VERTEX_AUTH_ERROR", str(exc)
    if isinstance(exc, VertexTimeoutError):
        return 504, "VERTEX_TIMEOUT", str(exc)
    if isinstance(exc, GenerationError):
        return 502, "AI_SERVICE_ERROR", str(exc)
    if isinstance(exc, (DatabaseError, SQLAlchemyError)):
        return 500, "DB_ERROR", "Database error. Check server logs."
    return 500, "UNKNOWN_ERROR", "Internal error."


def _render(request: Request, status_code: int, detail: Any, headers: dict[str, str] | None = None) -> JSONResponse:
    code, message, details = _split_detail(detail, status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=jsonable_encoder(payload), status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _render(request, exc.status_code, exc.detail, exc.headers)


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Router-level 404/405 come through Starlette rather than FastAPI.
    return _render(request, exc.status_code, exc.detail, getattr(exc, "headers", None))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    payload = error_response(
        request=request,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=payload, status_code=422)


async def domain_exception_handler(request: Request, exc: RspoAssistError) -> JSONResponse:
    status_code, code, message = map_domain_error(exc)
    logger.warning(
        "domain_error request_id=%s path=%s code=%s",
        get_request_id(request),
        request.url.path,
        code,
    )
    return _render(request, status_code, {"code": code, "message": message})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Log the traceback server-side; clients only see a stable internal error.
    logger.exception("unhandled_error request_id=%s path=%s", get_request_id(request), request.url.path)
    payload = error_response(
        request=request,
        code="INTERNAL_ERROR",
        message="Internal server error",
    )
    return JSONResponse(content=payload, status_code=500)
