"""
Per-Tenant Bookkeeping Ledger

This module provides:
- Tenant-scoped clients, keyed by the sender's phone number
- Immutable entries stored in integer cents
- Idempotent client resolution backed by a storage-level unique constraint
- Newest-first history queries with an optional client-name filter
"""

from .models import (
    EntrySource,
    Entry,
    HistoryEntry,
)
from .storage import LedgerDatabase
from .service import LedgerService, LedgerServiceError, StorageError

__all__ = [
    "EntrySource",
    "Entry",
    "HistoryEntry",
    "LedgerDatabase",
    "LedgerService",
    "LedgerServiceError",
    "StorageError",
]
