"""AuditLogMiddleware: one entry per request, action/resource mapping, failures, exclusions."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.middleware import action_for_method, resource_from_path
from app.audit.exceptions import AuditStoreError
from app.audit.models import AuditAction, AuditStatus
from app.audit.service import AuditLogService
from app.audit.store import InMemoryAuditLogStore
from app.config.settings import AppSettings
from app.main import create_app


@pytest.mark.parametrize(
    "method,expected",
    [
        ("GET", AuditAction.READ),
        ("post", AuditAction.CREATE),
        ("PUT", AuditAction.UPDATE),
        ("PATCH", AuditAction.UPDATE),
        ("DELETE", AuditAction.DELETE),
        ("OPTIONS", AuditAction.READ),
    ],
)
def test_action_for_method(method, expected):
    assert action_for_method(method) == expected


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/api/v1/invoices", "invoices"),
        ("/api/v2/occupancies/123", "occupancies"),
        ("/api/v1/super-admin/companies", "super-admin"),
        ("/health", "unknown"),
    ],
)
def test_resource_from_path(path, expected):
    assert resource_from_path(path) == expected


async def test_successful_read_is_audited(client: AsyncClient, audit_service):
    headers = {
        "X-Company-ID": "comp-1",
        "X-Correlation-ID": "test-corr-id",
        "X-User-ID": "user-123",
        "X-User-Email": "test@example.com",
        "User-Agent": "test-agent",
    }
    r = await client.get("/api/v1/invoices", headers=headers)
    assert r.status_code == 200

    [entry] = await audit_service.query()
    assert entry.action == AuditAction.READ
    assert entry.resource == "invoices"
    assert entry.method == "GET"
    assert entry.path == "/api/v1/invoices"
    assert entry.status == AuditStatus.SUCCESS
    assert entry.status_code == 200
    assert entry.duration >= 0
    assert entry.correlation_id == "test-corr-id"
    assert entry.company_id == "comp-1"
    assert entry.user_id == "user-123"
    assert entry.user_email == "test@example.com"
    assert entry.user_agent == "test-agent"
    assert entry.ip_address == "127.0.0.1"
    assert entry.error_message is None


async def test_post_maps_to_create(client: AsyncClient, audit_service, company_headers):
    r = await client.post("/api/v1/invoices/inv-1", headers=company_headers)
    assert r.status_code == 200
    [entry] = await audit_service.get_resource_logs("invoices")
    assert entry.action == AuditAction.CREATE
    assert entry.status_code == 200


async def test_http_error_is_audited_as_failure(client: AsyncClient, audit_service, company_headers):
    r = await client.get("/api/v1/apartments/a-1", headers=company_headers)
    assert r.status_code == 404
    [entry] = await audit_service.get_failed_operations("comp-1")
    assert entry.status_code == 404
    assert entry.resource == "apartments"


async def test_unhandled_error_is_audited_without_stack_trace(client: AsyncClient, audit_service, company_headers):
    r = await client.get("/api/v1/tenants/boom", headers=company_headers)
    assert r.status_code == 500
    [entry] = await audit_service.get_failed_operations()
    assert entry.status == AuditStatus.FAILURE
    assert entry.status_code == 500
    assert entry.error_message == "boom"
    assert entry.stack_trace is None


async def test_stack_trace_recorded_in_dev():
    settings = AppSettings(environment="dev")
    service = AuditLogService(store=InMemoryAuditLogStore(), settings=settings)
    app = create_app(settings, service)

    @app.get("/api/v1/payments/boom")
    async def boom():
        raise ValueError("bad amount")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/api/v1/payments/boom", headers={"X-Company-ID": "comp-1"})
    assert r.status_code == 500
    [entry] = await service.query()
    assert "ValueError: bad amount" in entry.stack_trace


async def test_excluded_status_code_not_audited(client: AsyncClient, audit_service, company_headers):
    r = await client.get("/api/v1/compounds/cached", headers=company_headers)
    assert r.status_code == 304
    assert await audit_service.count() == 0


async def test_missing_company_not_audited(client: AsyncClient, audit_service):
    r = await client.get("/api/v1/invoices")
    assert r.status_code == 400
    assert await audit_service.count() == 0


async def test_disabled_auditing_records_nothing():
    settings = AppSettings(audit_log_enabled=False)
    service = AuditLogService(store=InMemoryAuditLogStore(), settings=settings)
    app = create_app(settings, service)

    @app.get("/api/v1/invoices")
    async def list_invoices():
        return []

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/api/v1/invoices", headers={"X-Company-ID": "comp-1"})
    assert r.status_code == 200
    assert await service.count() == 0


async def test_each_request_gets_its_own_entry(client: AsyncClient, audit_service, company_headers):
    for _ in range(3):
        await client.get("/api/v1/invoices", headers=company_headers)
    stats = await audit_service.get_stats("comp-1")
    assert stats.total == 3
    assert stats.by_action == {"READ": 3}


async def test_entry_is_stamped_with_request_start(test_app, client: AsyncClient, audit_service, company_headers):
    @test_app.get("/api/v1/reports/slow")
    async def slow_report():
        await asyncio.sleep(0.2)
        return {}

    before = datetime.now(timezone.utc)
    r = await client.get("/api/v1/reports/slow", headers=company_headers)
    after = datetime.now(timezone.utc)
    assert r.status_code == 200

    [entry] = await audit_service.get_resource_logs("reports")
    assert before <= entry.timestamp < after - timedelta(milliseconds=150)
    assert entry.duration >= 150


async def test_audit_error_from_route_is_generic_500(test_app, client: AsyncClient, audit_service, company_headers):
    @test_app.get("/api/v1/payments/broken")
    async def broken_payment():
        raise AuditStoreError("store unavailable")

    r = await client.get("/api/v1/payments/broken", headers=company_headers)
    assert r.status_code == 500
    assert r.json() == {"detail": "Internal server error"}
    [entry] = await audit_service.get_failed_operations("comp-1")
    assert entry.error_message == "store unavailable"
