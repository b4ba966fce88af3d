"""
Domain models handed to the consumer.

These are separate from the storage models because the storage
shape and the in-memory shape differ: storage rows are flat and
keyed by user_id, the domain model nests entries inside ledgers
and attachments inside entries.

All models are frozen. A change produces a new object through
model_copy(); only the LedgerStore swaps new objects in, so a
consumer holding a reference never sees it change underneath.
"""

import base64
import binascii
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ledger_sync.exceptions import ValidationError
from ledger_sync.models.enums import EntryType, Category, PaymentMode


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Attachment(BaseModel):
    """
    An image tied to an entry.

    Pending: local_data holds the captured bytes, file_path is unset.
    Persisted: file_path is set, local_data is cleared.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    entry_id: str | None = None
    local_data: bytes | None = Field(default=None, repr=False)
    file_path: str | None = None
    file_name: str = ""
    file_type: str = "image/png"
    url: str | None = None

    @model_validator(mode="after")
    def exactly_one_state(self) -> "Attachment":
        if self.file_path and self.local_data is not None:
            raise ValueError("persisted attachment must not carry local data")
        if not self.file_path and self.local_data is None:
            raise ValueError("attachment needs either local data or a file path")
        return self

    @property
    def is_pending(self) -> bool:
        return not self.file_path

    @property
    def is_persisted(self) -> bool:
        return bool(self.file_path)

    @classmethod
    def from_data_url(cls, data_url: str, file_name: str = "", **kwargs) -> "Attachment":
        """
        Build a pending attachment from a data:<mime>;base64,<payload> URL.

        This is the format browsers and most capture widgets hand
        over for a picked image.
        """
        header, sep, payload = data_url.partition(",")
        if not sep or not header.startswith("data:") or not header.endswith(";base64"):
            raise ValidationError("Attachment data must be a base64 data URL")
        mime = header[len("data:"):-len(";base64")] or "application/octet-stream"
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError(f"Attachment data is not valid base64: {exc}") from exc
        return cls(local_data=data, file_name=file_name, file_type=mime, **kwargs)


class Entry(BaseModel):
    """A single dated cash movement."""
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    ledger_id: str | None = None
    type: EntryType
    date_time: datetime
    details: str = ""
    # Same precision as the NUMERIC(14, 2) storage column
    amount: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    category: Category = Category.FOOD
    mode: PaymentMode = PaymentMode.CASH
    attachments: tuple[Attachment, ...] = ()

    @field_validator("date_time")
    @classmethod
    def normalize_date_time(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def signed_amount(self) -> Decimal:
        """+amount for cash in, -amount for cash out."""
        return self.amount if self.type == EntryType.IN else -self.amount

    @property
    def pending_attachments(self) -> tuple[Attachment, ...]:
        return tuple(a for a in self.attachments if a.is_pending)


class Ledger(BaseModel):
    """A named container of entries, sorted by date_time."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(min_length=1)
    created_at: datetime
    entries: tuple[Entry, ...] = ()

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    def entry(self, entry_id: str) -> Entry | None:
        for e in self.entries:
            if e.id == entry_id:
                return e
        return None


class LedgerTotals(BaseModel):
    """Aggregate figures for one ledger."""
    model_config = ConfigDict(frozen=True)

    cash_in: Decimal
    cash_out: Decimal
    net: Decimal


def sort_entries(entries: Iterable[Entry]) -> tuple[Entry, ...]:
    """Order entries by date_time ascending. Ties keep their order."""
    return tuple(sorted(entries, key=lambda e: e.date_time))
