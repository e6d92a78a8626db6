"""Fixtures for API unit tests: app wired to an in-memory audit store, AsyncClient."""

import pytest
from fastapi import APIRouter, HTTPException, Response
from httpx import ASGITransport, AsyncClient

from app.audit.service import AuditLogService
from app.audit.store import InMemoryAuditLogStore
from app.config.settings import AppSettings
from app.main import create_app


def _resource_router() -> APIRouter:
    """Stand-in business routes so the audit middleware has something to observe."""
    router = APIRouter(prefix="/api/v1")

    @router.get("/invoices")
    async def list_invoices():
        return []

    @router.post("/invoices/{invoice_id}")
    async def create_invoice(invoice_id: str):
        return {"id": invoice_id}

    @router.get("/apartments/{apartment_id}")
    async def get_apartment(apartment_id: str):
        raise HTTPException(status_code=404, detail="Apartment not found")

    @router.get("/tenants/boom")
    async def boom():
        raise RuntimeError("boom")

    @router.get("/compounds/cached")
    async def cached():
        return Response(status_code=304)

    return router


@pytest.fixture
def settings():
    return AppSettings(environment="test", audit_log_exclude_status_codes=[304])


@pytest.fixture
def audit_service(settings):
    return AuditLogService(store=InMemoryAuditLogStore(), settings=settings)


@pytest.fixture
def test_app(settings, audit_service):
    app = create_app(settings, audit_service)
    app.include_router(_resource_router())
    return app


@pytest.fixture
async def client(test_app):
    # Unhandled route errors become 500 responses instead of propagating into the test.
    transport = ASGITransport(app=test_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def company_headers():
    return {"X-Company-ID": "comp-1"}
