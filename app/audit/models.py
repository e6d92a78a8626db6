"""Audit log domain models. Pure data: no storage, no HTTP."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class AuditAction(str, Enum):
    # CRUD
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"

    # Business operations
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    INVOICE_SENT = "INVOICE_SENT"
    INVOICE_MARKED_PAID = "INVOICE_MARKED_PAID"
    OCCUPANCY_ACTIVATED = "OCCUPANCY_ACTIVATED"
    OCCUPANCY_ENDED = "OCCUPANCY_ENDED"
    TENANT_BLACKLISTED = "TENANT_BLACKLISTED"

    # Authentication
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    LOGIN_FAILED = "LOGIN_FAILED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    SESSION_TERMINATED = "SESSION_TERMINATED"

    # Admin
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DISABLED = "USER_DISABLED"
    PERMISSION_CHANGED = "PERMISSION_CHANGED"
    EXPORT_INITIATED = "EXPORT_INITIATED"

    ERROR = "ERROR"


class AuditStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    PARTIAL = "PARTIAL"


MUTATING_ACTIONS = frozenset({AuditAction.CREATE, AuditAction.UPDATE, AuditAction.DELETE})


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC; aware ones are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class AuditChanges:
    """Before/after snapshots of a mutated resource."""

    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"before": self.before, "after": self.after}


@dataclass(frozen=True)
class AuditLogEntry:
    """
    Immutable audit record: who acted, on what, when (UTC), with which outcome.
    id and timestamp are assigned by the service at insertion.
    """

    id: str
    timestamp: datetime
    correlation_id: str
    company_id: str
    action: AuditAction
    resource: str
    method: str
    path: str
    status: AuditStatus
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    resource_id: Optional[str] = None
    status_code: Optional[int] = None
    duration: Optional[int] = None
    changes: Optional[AuditChanges] = None
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    stack_trace: Optional[str] = None

    @property
    def effective_duration(self) -> int:
        """Duration in ms; absent duration counts as 0 for filtering and stats."""
        return self.duration or 0

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON logging and API responses."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "company_id": self.company_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "action": self.action.value,
            "resource": self.resource,
            "resource_id": self.resource_id,
            "method": self.method,
            "path": self.path,
            "status": self.status.value,
            "status_code": self.status_code,
            "duration": self.duration,
            "changes": self.changes.to_dict() if self.changes else None,
            "description": self.description,
            "metadata": self.metadata,
            "error_message": self.error_message,
            "stack_trace": self.stack_trace,
        }


@dataclass(frozen=True)
class AuditLogFilter:
    """
    Query predicate. Every field that is set must match (logical AND).
    Date and duration bounds are inclusive.
    """

    company_id: Optional[str] = None
    user_id: Optional[str] = None
    action: Optional[AuditAction] = None
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    status: Optional[AuditStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_duration: Optional[int] = None
    max_duration: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", as_utc(self.start_date))
        object.__setattr__(self, "end_date", as_utc(self.end_date))

    def has_empty_range(self) -> bool:
        """True when a bound pair is inverted, so nothing can match."""
        if self.start_date and self.end_date and self.start_date > self.end_date:
            return True
        if (
            self.min_duration is not None
            and self.max_duration is not None
            and self.min_duration > self.max_duration
        ):
            return True
        return False

    def matches(self, entry: AuditLogEntry) -> bool:
        if self.company_id and entry.company_id != self.company_id:
            return False
        if self.user_id and entry.user_id != self.user_id:
            return False
        if self.action and entry.action != self.action:
            return False
        if self.resource and entry.resource != self.resource:
            return False
        if self.resource_id and entry.resource_id != self.resource_id:
            return False
        if self.status and entry.status != self.status:
            return False
        if self.start_date and entry.timestamp < self.start_date:
            return False
        if self.end_date and entry.timestamp > self.end_date:
            return False
        if self.min_duration is not None and entry.effective_duration < self.min_duration:
            return False
        if self.max_duration is not None and entry.effective_duration > self.max_duration:
            return False
        return True


@dataclass(frozen=True)
class AuditStats:
    """Aggregate view over a company's (or all) audit entries."""

    total: int
    by_action: Dict[str, int] = field(default_factory=dict)
    by_status: Dict[str, int] = field(default_factory=dict)
    failure_rate: float = 0.0
    average_duration: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "by_action": dict(self.by_action),
            "by_status": dict(self.by_status),
            "failure_rate": self.failure_rate,
            "average_duration": self.average_duration,
        }


@dataclass(frozen=True)
class AuditLogOutcome:
    """Result of recording an entry. Exactly one of entry / error is set."""

    entry: Optional[AuditLogEntry] = None
    error: Optional[str] = None

    @property
    def recorded(self) -> bool:
        return self.entry is not None

    @classmethod
    def ok(cls, entry: AuditLogEntry) -> "AuditLogOutcome":
        return cls(entry=entry)

    @classmethod
    def failed(cls, error: str) -> "AuditLogOutcome":
        return cls(error=error)
