"""Audit-layer exceptions. Typed, no HTTP."""


class AuditError(Exception):
    """Base for all audit-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidAuditEntryError(AuditError):
    """Raised when an entry cannot be built from the caller's input (e.g. missing company_id)."""


class AuditStoreError(AuditError):
    """Raised when the audit store fails to persist or read entries."""
