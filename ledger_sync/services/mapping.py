"""
Storage row to domain model conversion.

Every row read from the relational store passes through one of
these functions. Unknown category and mode values are defaulted
to OTHER; rows that still fail validation are rejected here so
nothing loosely shaped reaches the store.
"""

import enum
import logging
from typing import Callable, TypeVar

import pydantic

from ledger_sync.models.entry import AttachmentRow, EntryRow
from ledger_sync.models.enums import Category, PaymentMode
from ledger_sync.models.ledger import LedgerRow
from ledger_sync.schemas.ledger import Attachment, Entry, Ledger, sort_entries

logger = logging.getLogger(__name__)

UrlResolver = Callable[[str], str]

E = TypeVar("E", bound=enum.Enum)


def coerce_choice(enum_cls: type[E], value, default: E, *, field: str, row_id: str) -> E:
    """Match value against enum_cls case-insensitively, else default."""
    if isinstance(value, enum_cls):
        return value
    text = str(value or "").strip().lower()
    for member in enum_cls:
        if member.value.lower() == text:
            return member
    logger.warning(
        f"Row {row_id} has unknown {field} {value!r}, using {default.value}"
    )
    return default


def attachment_from_row(row: AttachmentRow, resolve_url: UrlResolver) -> Attachment:
    return Attachment(
        id=row.id,
        entry_id=row.entry_id,
        file_path=row.file_path,
        file_name=row.file_name or "",
        file_type=row.file_type or "application/octet-stream",
        url=resolve_url(row.file_path),
    )


def entry_from_row(row: EntryRow, resolve_url: UrlResolver) -> Entry:
    attachments = []
    for att_row in row.attachments:
        try:
            attachments.append(attachment_from_row(att_row, resolve_url))
        except pydantic.ValidationError as exc:
            logger.warning(f"Skipping malformed attachment row {att_row.id}: {exc}")

    return Entry(
        id=row.id,
        ledger_id=row.ledger_id,
        type=row.type,
        date_time=row.date_time,
        details=row.details or "",
        amount=row.amount,
        category=coerce_choice(
            Category, row.category, Category.OTHER,
            field="category", row_id=row.id,
        ),
        mode=coerce_choice(
            PaymentMode, row.mode, PaymentMode.OTHER,
            field="mode", row_id=row.id,
        ),
        attachments=tuple(attachments),
    )


def ledger_from_row(row: LedgerRow, resolve_url: UrlResolver, with_entries: bool = True) -> Ledger:
    """
    Convert a ledger row and, optionally, its loaded entries.

    with_entries=False skips the relationship entirely, which is
    needed for freshly inserted rows whose entries were never loaded.
    """
    entries = []
    if with_entries:
        for entry_row in row.entries:
            try:
                entries.append(entry_from_row(entry_row, resolve_url))
            except pydantic.ValidationError as exc:
                logger.warning(f"Skipping malformed entry row {entry_row.id}: {exc}")

    return Ledger(
        id=row.id,
        name=row.name,
        created_at=row.created_at,
        entries=sort_entries(entries),
    )
