"""Client-side ledger synchronization engine."""

from ledger_sync.auth import StaticAccountProvider
from ledger_sync.exceptions import (
    AuthenticationError,
    DesyncError,
    LedgerSyncError,
    NotFoundError,
    PartialFailure,
    RemoteError,
    SyncError,
    ValidationError,
)
from ledger_sync.main import configure_logging, create_store
from ledger_sync.schemas import Attachment, Entry, Ledger, LedgerTotals
from ledger_sync.services import LedgerStore, Notice

__all__ = [
    "StaticAccountProvider",
    "AuthenticationError",
    "DesyncError",
    "LedgerSyncError",
    "NotFoundError",
    "PartialFailure",
    "RemoteError",
    "SyncError",
    "ValidationError",
    "configure_logging",
    "create_store",
    "Attachment",
    "Entry",
    "Ledger",
    "LedgerTotals",
    "LedgerStore",
    "Notice",
]
