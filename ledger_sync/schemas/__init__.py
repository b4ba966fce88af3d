"""Domain models exposed to consumers of the store."""

from ledger_sync.schemas.ledger import (
    Attachment,
    Entry,
    Ledger,
    LedgerTotals,
    as_utc,
    sort_entries,
)

__all__ = [
    "Attachment",
    "Entry",
    "Ledger",
    "LedgerTotals",
    "as_utc",
    "sort_entries",
]
