# backend/fieldquote/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import ConfigurationError, EstimatingError
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.auth import router as auth_router
from .routers.jobs import router as jobs_router
from .routers.catalog import router as catalog_router
from .routers.settings import router as settings_router
from .routers.pricing_rules import router as pricing_rules_router
from .routers.photos import router as photos_router
from .routers.admin import router as admin_router
from .routers.invites import router as invites_router
from .routers.audit import router as audit_router

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def estimating_error_handler(request: Request, exc: EstimatingError) -> JSONResponse:
    """Domain errors that reach the app boundary become {"detail": ...} with their own status."""
    if isinstance(exc, ConfigurationError):
        log.error("configuration error: %s", exc, extra={"rule_id": exc.rule_id})
    body: dict = {"detail": str(exc)}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="FieldQuote Estimating", version=settings.app_version)

    # Request-ID first (observability baseline)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EstimatingError, estimating_error_handler)

    # Core
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)

    # Estimating
    app.include_router(jobs_router, prefix=API_PREFIX)
    app.include_router(catalog_router, prefix=API_PREFIX)
    app.include_router(settings_router, prefix=API_PREFIX)
    app.include_router(pricing_rules_router, prefix=API_PREFIX)
    app.include_router(photos_router, prefix=API_PREFIX)

    # Company administration
    app.include_router(admin_router, prefix=API_PREFIX)
    app.include_router(invites_router, prefix=API_PREFIX)
    app.include_router(audit_router, prefix=API_PREFIX)

    return app


app = create_app()
