"""
Entry repository: entry rows and their attachments in the remote store.

Writes are two-phase without a transaction spanning both phases:
the entry row is written first and yields the entry id, then the
pending attachments are uploaded under that id. An attachment that
fails to upload stays pending in the returned entry and is reported
as a PartialFailure; the row write is never undone because of it.
A later update() uploads whatever is still pending.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger_sync.auth import AccountProvider, require_account
from ledger_sync.exceptions import PartialFailure, ValidationError
from ledger_sync.models.entry import AttachmentRow, EntryRow
from ledger_sync.models.ledger import LedgerRow
from ledger_sync.schemas.ledger import Entry
from ledger_sync.services.attachment_uploader import AttachmentUploader
from ledger_sync.services.remote import missing_row, remote_call

logger = logging.getLogger(__name__)


@dataclass
class EntryWriteResult:
    """The entry as stored, plus any attachments left pending."""
    entry: Entry
    failures: list[PartialFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


def _row_values(entry: Entry) -> dict:
    return {
        "type": entry.type,
        "date_time": entry.date_time,
        "details": entry.details,
        "amount": entry.amount,
        "category": entry.category.value,
        "mode": entry.mode.value,
    }


class EntryRepository:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        uploader: AttachmentUploader,
        accounts: AccountProvider,
        upload_concurrency: int = 4,
    ):
        self.session_factory = session_factory
        self.uploader = uploader
        self.accounts = accounts
        self.upload_concurrency = max(1, upload_concurrency)

    async def create(self, ledger_id: str, entry: Entry) -> EntryWriteResult:
        """
        Insert the entry row, then upload its attachments.

        Raises RemoteError if the row insert fails. Upload failures
        do not raise; they come back in the result's failures.
        Attachments that are already persisted belong to some other
        entry and are rejected with ValidationError.
        """
        if any(a.is_persisted for a in entry.attachments):
            raise ValidationError("A new entry can only carry pending attachments")
        account_id = require_account(self.accounts)

        async with remote_call("add_entry", ledger_id):
            async with self.session_factory() as session, session.begin():
                owner = await session.execute(
                    select(LedgerRow.id).where(
                        LedgerRow.id == ledger_id,
                        LedgerRow.user_id == account_id,
                    )
                )
                if owner.scalar_one_or_none() is None:
                    raise missing_row("add_entry", "ledger", ledger_id)

                row = EntryRow(
                    ledger_id=ledger_id,
                    user_id=account_id,
                    **_row_values(entry),
                )
                session.add(row)
                await session.flush()
                entry_id = row.id

        logger.info(f"Inserted entry {entry_id} into ledger {ledger_id}")
        saved = entry.model_copy(update={"id": entry_id, "ledger_id": ledger_id})
        return await self._upload_pending(saved, account_id, "add_entry")

    async def update(self, entry: Entry) -> EntryWriteResult:
        """
        Update the entry's fields, drop attachment rows no longer
        listed on the entry, then upload attachments still pending.

        The owning ledger is never changed.
        Persisted attachments must already belong to this entry.
        """
        if not entry.id:
            raise ValidationError("Cannot update an entry without an id")
        foreign = [
            a.id for a in entry.attachments
            if a.is_persisted and a.entry_id != entry.id
        ]
        if foreign:
            raise ValidationError(
                f"Attachments {foreign} are stored under another entry"
            )
        account_id = require_account(self.accounts)
        kept = [a.id for a in entry.attachments if a.is_persisted]

        async with remote_call("update_entry", entry.id):
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    update(EntryRow)
                    .where(EntryRow.id == entry.id, EntryRow.user_id == account_id)
                    .values(**_row_values(entry))
                )
                if result.rowcount == 0:
                    raise missing_row("update_entry", "entry", entry.id)

                await session.execute(
                    delete(AttachmentRow).where(
                        AttachmentRow.entry_id == entry.id,
                        AttachmentRow.user_id == account_id,
                        AttachmentRow.id.not_in(kept),
                    )
                )

        logger.info(f"Updated entry {entry.id}")
        return await self._upload_pending(entry, account_id, "update_entry")

    async def delete(self, entry_id: str, ledger_id: str | None = None) -> None:
        await self.delete_many([entry_id], ledger_id, operation="delete_entry")

    async def delete_many(
        self,
        entry_ids: Iterable[str],
        ledger_id: str | None = None,
        operation: str = "bulk_delete_entries",
    ) -> None:
        """
        Delete entries and their attachment rows in one transaction.

        With ledger_id set, only entries of that ledger are touched.
        """
        ids = list(entry_ids)
        if not ids:
            return
        account_id = require_account(self.accounts)

        targets = select(EntryRow.id).where(
            EntryRow.id.in_(ids),
            EntryRow.user_id == account_id,
        )
        if ledger_id is not None:
            targets = targets.where(EntryRow.ledger_id == ledger_id)

        async with remote_call(operation, ",".join(ids)):
            async with self.session_factory() as session, session.begin():
                await session.execute(
                    delete(AttachmentRow)
                    .where(
                        AttachmentRow.entry_id.in_(targets),
                        AttachmentRow.user_id == account_id,
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.execute(
                    delete(EntryRow)
                    .where(EntryRow.id.in_(targets))
                    .execution_options(synchronize_session=False)
                )

        logger.info(f"Deleted {len(ids)} entr{'y' if len(ids) == 1 else 'ies'}")

    async def _upload_pending(
        self, entry: Entry, account_id: str, operation: str
    ) -> EntryWriteResult:
        semaphore = asyncio.Semaphore(self.upload_concurrency)

        async def upload_one(attachment):
            if attachment.is_persisted:
                return attachment
            async with semaphore:
                return await self.uploader.upload(attachment, account_id, entry.id)

        uploaded = await asyncio.gather(
            *(upload_one(a) for a in entry.attachments)
        )
        attachments = tuple(
            a if a.entry_id == entry.id else a.model_copy(update={"entry_id": entry.id})
            for a in uploaded
        )

        failures = [
            PartialFailure(operation, entry.id, a.id)
            for a in attachments if a.is_pending
        ]
        for failure in failures:
            logger.warning(str(failure))

        return EntryWriteResult(
            entry=entry.model_copy(update={"attachments": attachments}),
            failures=failures,
        )
