"""Audit log service: record entries, answer filtered queries and stats, enforce retention."""

import logging
import math
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from app.audit.exceptions import InvalidAuditEntryError
from app.audit.models import (
    MUTATING_ACTIONS,
    AuditAction,
    AuditChanges,
    AuditLogEntry,
    AuditLogFilter,
    AuditLogOutcome,
    AuditStats,
    AuditStatus,
)
from app.audit.redaction import SensitiveFieldRedactor
from app.audit.schemas import AuditEntryCreate, AuditLogPage, AuditLogQueryOptions
from app.audit.store import AuditLogStore
from app.config.settings import AppSettings

DEFAULT_LIMIT = 100
RECENT_CHANGES_LIMIT = 50
LOGIN_HISTORY_LIMIT = 50

EntryInput = Union[AuditEntryCreate, Mapping[str, Any]]


def _new_id() -> str:
    return str(uuid.uuid4())


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _newest_first(entries: List[AuditLogEntry]) -> List[AuditLogEntry]:
    # sorted() is stable: equal timestamps keep insertion order.
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)


class AuditLogService:
    """
    Records audit entries and serves read-side queries over them.
    log() never raises: audit failures must not break the audited operation.
    All reads are built on query(); results are newest first.
    """

    def __init__(
        self,
        store: AuditLogStore,
        settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        redactor: Optional[SensitiveFieldRedactor] = None,
    ) -> None:
        self._store = store
        self._logger = logger or logging.getLogger(__name__)
        self._max_log_age_days = settings.audit_log_max_age_days
        self._redactor = redactor or SensitiveFieldRedactor(
            settings.audit_log_sensitive_fields,
            settings.audit_log_redaction,
        )
        self._logger.info(
            "audit_logging_initialized",
            extra={"max_log_age_days": self._max_log_age_days},
        )

    @property
    def max_log_age_days(self) -> int:
        return self._max_log_age_days

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _build_entry(self, entry: EntryInput) -> AuditLogEntry:
        if not isinstance(entry, AuditEntryCreate):
            try:
                entry = AuditEntryCreate.model_validate(dict(entry))
            except ValidationError as e:
                raise InvalidAuditEntryError(f"Invalid audit entry: {e}") from e

        changes = None
        if entry.changes is not None:
            changes = AuditChanges(
                before=self._redactor.redact_optional(entry.changes.before),
                after=self._redactor.redact_optional(entry.changes.after),
            )
        return AuditLogEntry(
            id=_new_id(),
            timestamp=entry.timestamp or datetime.now(timezone.utc),
            correlation_id=entry.correlation_id,
            company_id=entry.company_id,
            action=entry.action,
            resource=entry.resource,
            method=entry.method,
            path=entry.path,
            status=entry.status,
            user_id=entry.user_id,
            user_email=entry.user_email,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            resource_id=entry.resource_id,
            status_code=entry.status_code,
            duration=entry.duration,
            changes=changes,
            description=entry.description,
            metadata=self._redactor.redact_optional(entry.metadata),
            error_message=entry.error_message,
            stack_trace=entry.stack_trace,
        )

    async def record(self, entry: EntryInput) -> AuditLogOutcome:
        """Build and store an entry. Never raises; failures come back as a failed outcome."""
        try:
            audit_entry = self._build_entry(entry)
            await self._store.insert(audit_entry)
        except Exception as e:
            self._logger.error(
                "audit_entry_rejected",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return AuditLogOutcome.failed(str(e))

        self._logger.info(
            "audit_entry_recorded",
            extra={
                "audit_id": audit_entry.id,
                "action": audit_entry.action.value,
                "method": audit_entry.method,
                "path": audit_entry.path,
                "status": audit_entry.status.value,
                "status_code": audit_entry.status_code,
                "duration_ms": audit_entry.duration,
                "user_id": audit_entry.user_id,
                "company_id": audit_entry.company_id,
                "correlation_id": audit_entry.correlation_id,
            },
        )
        if audit_entry.status == AuditStatus.FAILURE:
            self._logger.warning(
                "audit_entry_failure",
                extra={
                    "action": audit_entry.action.value,
                    "error_message": audit_entry.error_message,
                    "user_id": audit_entry.user_id,
                    "company_id": audit_entry.company_id,
                    "resource": audit_entry.resource,
                    "resource_id": audit_entry.resource_id,
                },
            )
        return AuditLogOutcome.ok(audit_entry)

    async def log(self, entry: EntryInput) -> None:
        """Fire-and-forget record. Never raises."""
        await self.record(entry)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(self, filter: Optional[AuditLogFilter] = None) -> List[AuditLogEntry]:
        """All entries matching every set filter field, newest first. Empty list if none."""
        filter = filter or AuditLogFilter()
        if filter.has_empty_range():
            return []
        return _newest_first(await self._store.scan(filter))

    async def get_company_logs(self, company_id: str, limit: int = DEFAULT_LIMIT) -> List[AuditLogEntry]:
        return (await self.query(AuditLogFilter(company_id=company_id)))[:limit]

    async def get_user_logs(self, user_id: str, limit: int = DEFAULT_LIMIT) -> List[AuditLogEntry]:
        return (await self.query(AuditLogFilter(user_id=user_id)))[:limit]

    async def get_resource_logs(self, resource: str, limit: int = DEFAULT_LIMIT) -> List[AuditLogEntry]:
        return (await self.query(AuditLogFilter(resource=resource)))[:limit]

    async def get_resource_id_logs(self, resource_id: str, limit: int = DEFAULT_LIMIT) -> List[AuditLogEntry]:
        return (await self.query(AuditLogFilter(resource_id=resource_id)))[:limit]

    async def get_failed_operations(self, company_id: Optional[str] = None) -> List[AuditLogEntry]:
        return await self.query(AuditLogFilter(status=AuditStatus.FAILURE, company_id=company_id))

    async def get_login_history(self, user_id: str) -> List[AuditLogEntry]:
        logs = await self.query(AuditLogFilter(user_id=user_id, action=AuditAction.LOGIN))
        return logs[:LOGIN_HISTORY_LIMIT]

    async def get_recent_changes(self, resource: str, limit: int = RECENT_CHANGES_LIMIT) -> List[AuditLogEntry]:
        logs = await self.query(AuditLogFilter(resource=resource))
        return [e for e in logs if e.action in MUTATING_ACTIONS][:limit]

    async def count(self, filter: Optional[AuditLogFilter] = None) -> int:
        return len(await self.query(filter))

    async def search(self, options: AuditLogQueryOptions) -> AuditLogPage:
        """Paginated, sortable query. Entries missing the sort field go last."""
        logs = await self.query(options.to_filter())
        present = [e for e in logs if getattr(e, options.sort_by) is not None]
        missing = [e for e in logs if getattr(e, options.sort_by) is None]
        present.sort(
            key=lambda e: getattr(e, options.sort_by),
            reverse=options.sort_order == "DESC",
        )
        ordered = present + missing

        total = len(ordered)
        start = (options.page - 1) * options.limit
        pages = math.ceil(total / options.limit) if total else 0
        return AuditLogPage(
            data=ordered[start:start + options.limit],
            page=options.page,
            limit=options.limit,
            total=total,
            pages=pages,
            has_next_page=options.page < pages,
            has_previous_page=options.page > 1,
        )

    async def get_stats(self, company_id: Optional[str] = None) -> AuditStats:
        logs = await self.query(AuditLogFilter(company_id=company_id))
        if not logs:
            return AuditStats(total=0)

        by_action = Counter(e.action.value for e in logs)
        by_status = Counter(e.status.value for e in logs)
        total_duration = sum(e.effective_duration for e in logs)
        return AuditStats(
            total=len(logs),
            by_action=dict(by_action),
            by_status=dict(by_status),
            failure_rate=by_status.get(AuditStatus.FAILURE.value, 0) / len(logs) * 100,
            average_duration=_round_half_up(total_duration / len(logs)),
        )

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def cleanup(self) -> int:
        """Remove entries at or before now - max_log_age_days. Returns the number removed."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=self._max_log_age_days)
        removed = await self._store.delete_where(AuditLogFilter(end_date=cutoff))
        self._logger.info(
            "audit_log_cleanup",
            extra={"removed": removed, "cutoff": cutoff.isoformat()},
        )
        return removed
