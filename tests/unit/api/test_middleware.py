"""Tests for API middleware: correlation ID, company required, response headers."""

from httpx import AsyncClient


async def test_correlation_id_generated(client: AsyncClient, company_headers):
    """When X-Correlation-ID is not sent, response has a generated correlation ID."""
    r = await client.get("/health", headers=company_headers)
    assert r.status_code == 200
    assert "X-Correlation-ID" in r.headers
    assert len(r.headers["X-Correlation-ID"]) > 0


async def test_correlation_id_preserved_when_passed(client: AsyncClient, company_headers):
    """When X-Correlation-ID is sent, the same value is returned in response."""
    correlation_id = "my-correlation-123"
    r = await client.get(
        "/health",
        headers={**company_headers, "X-Correlation-ID": correlation_id},
    )
    assert r.status_code == 200
    assert r.headers.get("X-Correlation-ID") == correlation_id
    assert r.json().get("correlation_id") == correlation_id


async def test_request_id_used_as_correlation_fallback(client: AsyncClient, company_headers):
    r = await client.get("/health", headers={**company_headers, "X-Request-ID": "req-42"})
    assert r.headers.get("X-Correlation-ID") == "req-42"


async def test_company_required(client: AsyncClient):
    """When X-Company-ID is missing or blank, response is 400."""
    r = await client.get("/api/v1/invoices")
    assert r.status_code == 400
    assert "detail" in r.json()
    r = await client.get("/api/v1/invoices", headers={"X-Company-ID": "   "})
    assert r.status_code == 400


async def test_company_id_is_stripped(client: AsyncClient):
    r = await client.get("/health", headers={"X-Company-ID": "  comp-7 "})
    assert r.json()["company_id"] == "comp-7"
