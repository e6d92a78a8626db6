"""Audit log store protocol and the in-memory implementation."""

import threading
from typing import List, Protocol

from app.audit.exceptions import AuditStoreError
from app.audit.models import AuditLogEntry, AuditLogFilter


class AuditLogStore(Protocol):
    """
    Append-only storage for audit entries. The service depends on this; a durable
    backend can translate AuditLogFilter fields into its own query language.
    """

    async def insert(self, entry: AuditLogEntry) -> None:
        """Append an entry. Entries are never updated once inserted."""
        ...

    async def scan(self, predicate: AuditLogFilter) -> List[AuditLogEntry]:
        """Return matching entries in insertion order."""
        ...

    async def delete_where(self, predicate: AuditLogFilter) -> int:
        """Remove matching entries. Returns the number removed."""
        ...

    async def size(self) -> int:
        ...


class InMemoryAuditLogStore:
    """
    Process-local store: list in insertion order, linear scan.
    Mutations hold the lock; scans filter a snapshot taken under the lock.
    Implements AuditLogStore protocol.
    """

    def __init__(self) -> None:
        self._entries: List[AuditLogEntry] = []
        self._ids: set[str] = set()
        self._lock = threading.Lock()

    async def insert(self, entry: AuditLogEntry) -> None:
        with self._lock:
            if entry.id in self._ids:
                raise AuditStoreError(f"Duplicate audit entry id: {entry.id}")
            self._entries.append(entry)
            self._ids.add(entry.id)

    async def scan(self, predicate: AuditLogFilter) -> List[AuditLogEntry]:
        with self._lock:
            snapshot = list(self._entries)
        return [e for e in snapshot if predicate.matches(e)]

    async def delete_where(self, predicate: AuditLogFilter) -> int:
        with self._lock:
            kept = [e for e in self._entries if not predicate.matches(e)]
            removed = len(self._entries) - len(kept)
            self._entries = kept
            self._ids = {e.id for e in kept}
        return removed

    async def size(self) -> int:
        with self._lock:
            return len(self._entries)
