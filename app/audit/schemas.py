"""Pydantic schemas for audit log input and paginated output. Required fields validated, optional ones defaulted; no storage."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.audit.models import AuditAction, AuditLogEntry, AuditLogFilter, AuditStatus, as_utc

SortField = Literal[
    "timestamp",
    "action",
    "resource",
    "status",
    "status_code",
    "duration",
    "user_id",
    "company_id",
]


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

class AuditChangesSchema(BaseModel):
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class AuditEntryCreate(BaseModel):
    """Caller-supplied entry. No id: the service assigns it. Timestamp defaults to now."""

    model_config = ConfigDict(extra="ignore")

    timestamp: Optional[datetime] = None
    correlation_id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1, description="Tenant identifier; must not be empty")
    action: AuditAction
    resource: str = Field(..., min_length=1, description="Entity type, e.g. 'invoices'")
    method: str = Field(..., min_length=1, description="HTTP verb of the originating request")
    path: str = Field(..., min_length=1)
    status: AuditStatus
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    resource_id: Optional[str] = None
    status_code: Optional[int] = None
    duration: Optional[int] = Field(None, description="Elapsed milliseconds; negative values are clamped to 0")
    changes: Optional[AuditChangesSchema] = None
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    stack_trace: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("method")
    @classmethod
    def method_upper(cls, v: str) -> str:
        return v.upper()

    @field_validator("duration")
    @classmethod
    def duration_not_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is None:
            return v
        return max(v, 0)


# ---------------------------------------------------------------------------
# Paginated search
# ---------------------------------------------------------------------------

class AuditLogQueryOptions(BaseModel):
    """Filter fields plus page window and ordering."""

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

    page: int = Field(1, ge=1, le=1000)
    limit: int = Field(10, ge=1, le=100)
    sort_by: SortField = "timestamp"
    sort_order: Literal["ASC", "DESC"] = "DESC"

    def to_filter(self) -> AuditLogFilter:
        return AuditLogFilter(
            company_id=self.company_id,
            user_id=self.user_id,
            action=self.action,
            resource=self.resource,
            resource_id=self.resource_id,
            status=self.status,
            start_date=self.start_date,
            end_date=self.end_date,
            min_duration=self.min_duration,
            max_duration=self.max_duration,
        )


class AuditLogPage(BaseModel):
    """One page of entries plus pagination metadata."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: List[AuditLogEntry]
    page: int
    limit: int
    total: int
    pages: int
    has_next_page: bool
    has_previous_page: bool
