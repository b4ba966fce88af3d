"""
Ledger repository: ledger rows and the nested read of everything.

The nested read returns every ledger of the current account with
its entries and their attachments, newest ledger first. Deleting
a ledger is two remote steps, children first: delete_entries()
then delete(). Foreign keys reject the parent delete while any
entry still points at it.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ledger_sync.auth import AccountProvider, require_account
from ledger_sync.exceptions import AuthenticationError, SyncError
from ledger_sync.models.entry import AttachmentRow, EntryRow
from ledger_sync.models.ledger import LedgerRow
from ledger_sync.schemas.ledger import Ledger, as_utc
from ledger_sync.services.mapping import UrlResolver, ledger_from_row
from ledger_sync.services.remote import missing_row, remote_call

logger = logging.getLogger(__name__)


class LedgerRepository:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        accounts: AccountProvider,
        resolve_url: UrlResolver,
    ):
        self.session_factory = session_factory
        self.accounts = accounts
        self.resolve_url = resolve_url

    async def fetch_all(self) -> list[Ledger]:
        """
        Load all ledgers with nested entries and attachments.

        Raises SyncError on any transport or authentication failure.
        """
        try:
            account_id = require_account(self.accounts)
        except AuthenticationError as exc:
            raise SyncError("load_all", exc) from exc

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(LedgerRow)
                    .where(LedgerRow.user_id == account_id)
                    .options(
                        selectinload(LedgerRow.entries)
                        .selectinload(EntryRow.attachments)
                    )
                    .order_by(LedgerRow.created_at.desc())
                )
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as exc:
            logger.error(f"Remote load_all failed: {exc}")
            raise SyncError("load_all", exc) from exc

        ledgers = [ledger_from_row(row, self.resolve_url) for row in rows]
        logger.debug(f"Loaded {len(ledgers)} ledgers for account {account_id}")
        return ledgers

    async def insert(self, name: str) -> Ledger:
        account_id = require_account(self.accounts)

        async with remote_call("create_ledger"):
            async with self.session_factory() as session, session.begin():
                row = LedgerRow(name=name, user_id=account_id)
                session.add(row)
                await session.flush()

        logger.info(f"Created ledger {row.id} ({name!r})")
        return ledger_from_row(row, self.resolve_url, with_entries=False)

    async def update(
        self, ledger_id: str, name: str, created_at: datetime | None = None
    ) -> Ledger:
        """Rename a ledger and optionally move its creation time."""
        account_id = require_account(self.accounts)

        async with remote_call("rename_ledger", ledger_id):
            async with self.session_factory() as session, session.begin():
                row = (await session.execute(
                    select(LedgerRow).where(
                        LedgerRow.id == ledger_id,
                        LedgerRow.user_id == account_id,
                    )
                )).scalar_one_or_none()
                if row is None:
                    raise missing_row("rename_ledger", "ledger", ledger_id)

                row.name = name
                if created_at is not None:
                    row.created_at = as_utc(created_at)
                await session.flush()

        logger.info(f"Updated ledger {ledger_id} ({name!r})")
        return ledger_from_row(row, self.resolve_url, with_entries=False)

    async def delete_entries(self, ledger_id: str) -> None:
        """Delete every entry of a ledger, and their attachment rows."""
        account_id = require_account(self.accounts)

        async with remote_call("delete_ledger_entries", ledger_id):
            async with self.session_factory() as session, session.begin():
                entry_ids = select(EntryRow.id).where(
                    EntryRow.ledger_id == ledger_id,
                    EntryRow.user_id == account_id,
                )
                await session.execute(
                    delete(AttachmentRow)
                    .where(AttachmentRow.entry_id.in_(entry_ids))
                    .execution_options(synchronize_session=False)
                )
                await session.execute(
                    delete(EntryRow)
                    .where(
                        EntryRow.ledger_id == ledger_id,
                        EntryRow.user_id == account_id,
                    )
                    .execution_options(synchronize_session=False)
                )

        logger.info(f"Deleted all entries of ledger {ledger_id}")

    async def delete(self, ledger_id: str) -> None:
        """Delete the ledger row. Its entries must already be gone."""
        account_id = require_account(self.accounts)

        async with remote_call("delete_ledger", ledger_id):
            async with self.session_factory() as session, session.begin():
                await session.execute(
                    delete(LedgerRow).where(
                        LedgerRow.id == ledger_id,
                        LedgerRow.user_id == account_id,
                    )
                )

        logger.info(f"Deleted ledger {ledger_id}")
