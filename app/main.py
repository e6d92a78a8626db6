# app/main.py

from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.api.middleware import (
    AuditLogMiddleware,
    CompanyContextMiddleware,
    CorrelationIdMiddleware,
)
from app.api.routers import health
from app.audit.service import AuditLogService
from app.audit.store import InMemoryAuditLogStore
from app.config.logging import configure_logging
from app.config.settings import AppSettings, get_settings


def create_app(
    settings: Optional[AppSettings] = None,
    audit_log_service: Optional[AuditLogService] = None,
) -> FastAPI:
    """Composition root: one AuditLogService per app, shared through app.state."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.audit_log_service = audit_log_service or AuditLogService(
        store=InMemoryAuditLogStore(),
        settings=settings,
    )

    # Middleware order: last added runs first (outermost). Request flow: CorrelationId -> CompanyContext -> AuditLog.
    app.add_middleware(AuditLogMiddleware)
    app.add_middleware(CompanyContextMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    app.include_router(health.router)
    return app


_settings = get_settings()
configure_logging(_settings.log_level)

app = create_app(_settings)
