from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from typing import AsyncIterator
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rspoassist.apps.api.errors import (
    domain_exception_handler,
    http_exception_handler,
    starlette_http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from rspoassist.apps.api.response import API_VERSION
from rspoassist.apps.api.routes.auth import router as auth_router
from rspoassist.apps.api.routes.billing import router as billing_router
from rspoassist.apps.api.routes.chat import router as chat_router
from rspoassist.apps.api.routes.checklists import router as checklists_router
from rspoassist.apps.api.routes.documents import router as documents_router
from rspoassist.apps.api.routes.health import router as health_router
from rspoassist.apps.api.routes.history import router as history_router
from rspoassist.apps.api.routes.nc_drafts import router as nc_drafts_router
from rspoassist.apps.api.routes.reference import router as reference_router
from rspoassist.apps.api.routes.usage import router as usage_router
from rspoassist.apps.api.routes.users import router as users_router
from rspoassist.core.config import get_settings
from rspoassist.core.errors import RspoAssistError
from rspoassist.core.logging import configure_logging
from rspoassist.persistence.db import create_schema


logger = logging.getLogger(__name__)

# Endpoints reachable without a session token.
_PUBLIC_PATHS = {
    "/v1/health",
    "/v1/auth/login",
    "/v1/reference/standards",
    "/v1/reference/standards/{standard_id}/clauses",
    "/v1/reference/plans",
    "/v1/reference/modes",
    "/v1/reference/languages",
    "/v1/reference/national-interpretations",
    "/v1/reference/disclaimer",
}

_ROUTERS = (
    health_router,
    auth_router,
    users_router,
    usage_router,
    chat_router,
    history_router,
    documents_router,
    checklists_router,
    nc_drafts_router,
    billing_router,
    reference_router,
)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    if get_settings().db_auto_create:
        await create_schema()
        logger.info("db_schema_ready auto_create=true")
    yield


def create_app() -> FastAPI:
    configure_logging()
    # Schema and docs live only under /v1; /docs redirects there.
    app = FastAPI(
        title="RSPO Assistant API",
        lifespan=_lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        logger.info(
            "request_complete request_id=%s method=%s path=%s status=%s latency_ms=%.1f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await starlette_http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        return await http_exception_handler(request, exc)

    @app.exception_handler(RspoAssistError)
    async def _domain_exception_handler(request: Request, exc: RspoAssistError):
        return await domain_exception_handler(request, exc)

    for router in _ROUTERS:
        app.include_router(router, prefix=f"/{API_VERSION}")

    @app.get("/v1/openapi.json", include_in_schema=False)
    async def openapi_json() -> JSONResponse:
        return JSONResponse(app.openapi())

    @app.get("/v1/docs", include_in_schema=False)
    async def v1_docs() -> HTMLResponse:
        return get_swagger_ui_html(openapi_url="/v1/openapi.json", title="RSPO Assistant API v1")

    @app.get("/docs", include_in_schema=False)
    async def docs_redirect() -> RedirectResponse:
        return RedirectResponse(url="/v1/docs")

    def custom_openapi() -> dict:
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title="RSPO Assistant API",
            version=API_VERSION,
            routes=app.routes,
        )
        schema["servers"] = [{"url": "http://localhost:8000"}]
        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes["BearerAuth"] = {"type": "http", "scheme": "bearer"}
        for path, operations in schema.get("paths", {}).items():
            if path in _PUBLIC_PATHS:
                continue
            for operation in operations.values():
                operation.setdefault("security", [{"BearerAuth": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
