"""
Tests for storage row conversion.

Tests cover:
- Case-insensitive category / mode matching with OTHER fallback
- Malformed nested rows skipped instead of failing the whole read
"""

from datetime import datetime, timezone
from decimal import Decimal

from ledger_sync.models.entry import AttachmentRow, EntryRow
from ledger_sync.models.enums import Category, EntryType, PaymentMode
from ledger_sync.models.ledger import LedgerRow
from ledger_sync.services.mapping import coerce_choice, ledger_from_row


def resolve(path):
    return f"https://files.example.test/{path}"


def entry_row(id_, amount="10.00", attachments=()):
    return EntryRow(
        id=id_,
        ledger_id="l1",
        user_id="u1",
        type=EntryType.IN,
        date_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        details=None,
        amount=Decimal(amount),
        category="Food",
        mode="Cash",
        attachments=list(attachments),
    )


class TestCoerceChoice:

    def test_matches_ignoring_case(self):
        assert coerce_choice(
            Category, "utilities", Category.OTHER, field="category", row_id="r"
        ) == Category.UTILITIES

    def test_passes_members_through(self):
        assert coerce_choice(
            PaymentMode, PaymentMode.UPI, PaymentMode.OTHER, field="mode", row_id="r"
        ) is PaymentMode.UPI

    def test_unknown_value_uses_default(self, caplog):
        result = coerce_choice(
            PaymentMode, "Cheque", PaymentMode.OTHER, field="mode", row_id="r1"
        )

        assert result == PaymentMode.OTHER
        assert "unknown mode" in caplog.text

    def test_missing_value_uses_default(self):
        assert coerce_choice(
            Category, None, Category.OTHER, field="category", row_id="r"
        ) == Category.OTHER


class TestLedgerFromRow:

    def test_negative_amount_row_skipped(self):
        row = LedgerRow(
            id="l1", user_id="u1", name="Trips",
            created_at=datetime(2024, 1, 1),
            entries=[entry_row("good"), entry_row("bad", amount="-5.00")],
        )

        ledger = ledger_from_row(row, resolve)

        assert [e.id for e in ledger.entries] == ["good"]
        assert ledger.entries[0].details == ""
        assert ledger.created_at.tzinfo is not None

    def test_attachment_without_path_skipped(self):
        attachments = [
            AttachmentRow(id="a1", entry_id="e1", user_id="u1",
                          file_path="u1/e1/a.png", file_name="a.png", file_type="image/png"),
            AttachmentRow(id="a2", entry_id="e1", user_id="u1",
                          file_path="", file_name="b.png", file_type="image/png"),
        ]
        row = LedgerRow(
            id="l1", user_id="u1", name="Trips",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            entries=[entry_row("e1", attachments=attachments)],
        )

        ledger = ledger_from_row(row, resolve)

        [att] = ledger.entries[0].attachments
        assert att.id == "a1"
        assert att.url == "https://files.example.test/u1/e1/a.png"

    def test_without_entries(self):
        row = LedgerRow(
            id="l1", user_id="u1", name="Trips",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        assert ledger_from_row(row, resolve, with_entries=False).entries == ()
