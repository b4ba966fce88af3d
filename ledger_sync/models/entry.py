"""
Entry and attachment storage models.

Each entry is one dated cash movement inside a ledger. The
storage column for the moment of the movement is date_time;
the repositories translate it into the domain model.

Attachment rows are metadata only. The image bytes live in
the blob store under file_path.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey, Text,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_sync.models.base import Base
from ledger_sync.models.enums import EntryType
from ledger_sync.models.ledger import new_id, utcnow


class EntryRow(Base):
    __tablename__ = "entries"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_id
    )
    ledger_id: Mapped[str] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    type: Mapped[EntryType] = mapped_column(
        SAEnum(
            EntryType,
            name="entry_type_enum",
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
    )
    date_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False
    )
    # Plain strings rather than database enums: unknown values
    # are defaulted on read instead of failing the whole load.
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    mode: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    ledger: Mapped["LedgerRow"] = relationship(back_populates="entries")
    attachments: Mapped[list["AttachmentRow"]] = relationship(
        back_populates="entry",
        order_by="AttachmentRow.created_at",
    )

    def __repr__(self) -> str:
        return f"<EntryRow {self.id} {self.type.value} {self.amount}>"


class AttachmentRow(Base):
    __tablename__ = "attachments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_id
    )
    entry_id: Mapped[str] = mapped_column(
        ForeignKey("entries.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    file_path: Mapped[str] = mapped_column(String(512), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    entry: Mapped["EntryRow"] = relationship(back_populates="attachments")

    def __repr__(self) -> str:
        return f"<AttachmentRow {self.id} {self.file_path}>"
