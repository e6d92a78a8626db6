"""Fixtures for audit tests: settings, in-memory store, service, entry factory."""

from datetime import datetime, timezone

import pytest

from app.audit.models import AuditAction, AuditStatus
from app.audit.service import AuditLogService
from app.audit.store import InMemoryAuditLogStore
from app.config.settings import AppSettings


def make_entry(**overrides) -> dict:
    """Minimal valid entry payload; override any field per test."""
    entry = {
        "timestamp": datetime.now(timezone.utc),
        "correlation_id": "corr-1",
        "company_id": "comp-1",
        "action": AuditAction.CREATE,
        "resource": "invoices",
        "method": "POST",
        "path": "/api/v1/invoices",
        "status": AuditStatus.SUCCESS,
    }
    entry.update(overrides)
    return entry


@pytest.fixture
def settings():
    return AppSettings(audit_log_max_age_days=90)


@pytest.fixture
def store():
    return InMemoryAuditLogStore()


@pytest.fixture
def service(store, settings):
    return AuditLogService(store=store, settings=settings)


@pytest.fixture
def entry_factory():
    return make_entry
