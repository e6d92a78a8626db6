"""Audit logging: entry model, store, query and retention service. No FastAPI."""

from app.audit.models import AuditAction, AuditLogEntry, AuditLogFilter, AuditStats, AuditStatus
from app.audit.service import AuditLogService
from app.audit.store import AuditLogStore, InMemoryAuditLogStore

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "AuditLogFilter",
    "AuditLogService",
    "AuditLogStore",
    "AuditStats",
    "AuditStatus",
    "InMemoryAuditLogStore",
]
