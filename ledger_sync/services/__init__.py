"""Repositories, the attachment pipeline and the ledger store."""

from ledger_sync.services.attachment_uploader import AttachmentUploader
from ledger_sync.services.entry_repository import EntryRepository, EntryWriteResult
from ledger_sync.services.ledger_repository import LedgerRepository
from ledger_sync.services.ledger_store import LedgerStore
from ledger_sync.services.reconciliation import Notice, Reconciler

__all__ = [
    "AttachmentUploader",
    "EntryRepository",
    "EntryWriteResult",
    "LedgerRepository",
    "LedgerStore",
    "Notice",
    "Reconciler",
]
