"""
Storage models package.

All models must be imported here so that Base.metadata knows
every table before init_models() creates the schema.
"""

from ledger_sync.models.base import (
    Base,
    create_engine,
    create_session_factory,
    engine_from_settings,
    init_models,
)
from ledger_sync.models.enums import EntryType, Category, PaymentMode
from ledger_sync.models.ledger import LedgerRow
from ledger_sync.models.entry import EntryRow, AttachmentRow

__all__ = [
    "Base",
    "create_engine",
    "create_session_factory",
    "engine_from_settings",
    "init_models",
    "EntryType",
    "Category",
    "PaymentMode",
    "LedgerRow",
    "EntryRow",
    "AttachmentRow",
]
