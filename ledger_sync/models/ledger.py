"""
Ledger storage model.

A ledger is a named container owned by one account. Names are
unique per account regardless of case; the unique index on
lower(name) is the server-side half of that rule.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_sync.models.base import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerRow(Base):
    __tablename__ = "ledgers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_id
    )
    user_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    entries: Mapped[list["EntryRow"]] = relationship(back_populates="ledger")

    def __repr__(self) -> str:
        return f"<LedgerRow {self.id} {self.name!r}>"


Index(
    "uq_ledgers_user_lower_name",
    LedgerRow.user_id,
    func.lower(LedgerRow.name),
    unique=True,
)
