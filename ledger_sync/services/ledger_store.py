"""
Ledger store: the in-memory model the consumer reads and mutates.

The store owns the collection of ledgers. Nothing else changes it;
consumers get frozen models and call the mutation methods below.

Mutations follow one of two patterns:

Pessimistic (create_ledger, rename_ledger, add_entry, update_entry):
    the remote write is awaited first and local state only changes
    after it succeeds. A failure leaves local state untouched.

Optimistic (delete_entry, bulk_delete_entries):
    local state changes first, then the remote write runs. A failure
    reloads everything from the remote store through the Reconciler.

delete_ledger is pessimistic but spans two remote steps; a failure
in either one also reloads, so a half-deleted ledger is never shown.

Mutations against the same entity id are serialized: a second call
waits until the first finishes. in_flight lists the busy ids.
"""

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence

from ledger_sync.exceptions import (
    LedgerSyncError,
    NotFoundError,
    RemoteError,
    ValidationError,
)
from ledger_sync.schemas.ledger import Entry, Ledger, LedgerTotals, sort_entries
from ledger_sync.services.entry_repository import EntryRepository, EntryWriteResult
from ledger_sync.services.ledger_repository import LedgerRepository
from ledger_sync.services.reconciliation import Notice, Reconciler
from ledger_sync.services.summary import SummaryCache

logger = logging.getLogger(__name__)


class LedgerStore:

    def __init__(
        self,
        ledger_repository: LedgerRepository,
        entry_repository: EntryRepository,
    ):
        self.ledger_repository = ledger_repository
        self.entry_repository = entry_repository
        self.reconciler = Reconciler(self.load_all)
        self.loaded = False

        self._ledgers: dict[str, Ledger] = {}
        self._summaries = SummaryCache()
        self._notices: list[Notice] = []
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: Counter[str] = Counter()
        self._detached = False

    # --- Read model ---

    @property
    def ledgers(self) -> list[Ledger]:
        """All ledgers, newest first."""
        return list(self._ledgers.values())

    def get_ledger(self, ledger_id: str) -> Ledger:
        ledger = self._ledgers.get(ledger_id)
        if ledger is None:
            raise NotFoundError("Ledger", ledger_id)
        return ledger

    def search(self, query: str) -> list[Ledger]:
        """Ledgers whose name contains query, ignoring case."""
        needle = query.strip().lower()
        return [
            ledger for ledger in self._ledgers.values()
            if needle in ledger.name.lower()
        ]

    def running_balances(self, ledger_id: str) -> tuple[Decimal, ...]:
        ledger = self.get_ledger(ledger_id)
        return self._summaries.balances(ledger_id, ledger.entries)

    def totals(self, ledger_id: str) -> LedgerTotals:
        ledger = self.get_ledger(ledger_id)
        return self._summaries.totals(ledger_id, ledger.entries)

    @property
    def notices(self) -> list[Notice]:
        return list(self._notices)

    def drain_notices(self) -> list[Notice]:
        """Return collected notices and forget them."""
        notices, self._notices = self._notices, []
        return notices

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._pending)

    def is_busy(self, entity_id: str) -> bool:
        return entity_id in self._pending

    def detach(self) -> None:
        """
        Stop applying remote results to local state.

        Calls already running still finish remotely; whatever they
        return afterwards is dropped.
        """
        self._detached = True

    # --- Loading ---

    async def load_all(self) -> list[Ledger]:
        """
        Replace local state with everything the remote store holds.

        Raises SyncError on failure and leaves local state as it was.
        """
        ledgers = await self.ledger_repository.fetch_all()
        if not self._can_apply("load_all"):
            return ledgers

        self._ledgers = {ledger.id: ledger for ledger in ledgers}
        self._summaries.clear()
        self.loaded = True
        logger.info(f"Loaded {len(ledgers)} ledgers")
        return self.ledgers

    # --- Ledger mutations ---

    async def create_ledger(self, name: str) -> Ledger:
        """
        Create a ledger. Raises ValidationError for a blank or duplicate
        name and RemoteError if the insert fails.
        """
        candidate = name.strip() if isinstance(name, str) else ""
        async with self._serialized(f"ledger-name:{candidate.lower()}"):
            clean = self._check_name(name)
            ledger = await self.ledger_repository.insert(clean)

            if self._can_apply("create_ledger"):
                self._ledgers = {ledger.id: ledger, **self._ledgers}
            return ledger

    async def rename_ledger(
        self,
        ledger_id: str,
        new_name: str,
        new_created_at: datetime | None = None,
    ) -> bool:
        """
        Rename a ledger, optionally changing its creation time.

        Returns False if the remote update failed; local state is
        then unchanged and a notice is recorded.
        """
        async with self._serialized(ledger_id):
            self.get_ledger(ledger_id)
            clean = self._check_name(new_name, exclude_id=ledger_id)
            try:
                updated = await self.ledger_repository.update(
                    ledger_id, clean, new_created_at
                )
            except RemoteError as exc:
                self._notify("rename_ledger", "Failed to rename ledger.", ledger_id, exc)
                return False

            current = self._ledgers.get(ledger_id)
            if current is not None and self._can_apply("rename_ledger"):
                self._ledgers[ledger_id] = current.model_copy(update={
                    "name": updated.name,
                    "created_at": updated.created_at,
                })
            return True

    async def delete_ledger(self, ledger_id: str) -> bool:
        """
        Delete a ledger and all its entries, entries first.

        Returns False on failure, after reloading local state.
        """
        async with self._serialized(ledger_id):
            self.get_ledger(ledger_id)
            try:
                await self.ledger_repository.delete_entries(ledger_id)
                await self.ledger_repository.delete(ledger_id)
            except RemoteError as exc:
                desync = await self.reconciler.recover("delete_ledger", ledger_id, exc)
                self._notify(
                    "delete_ledger", "Delete failed. Please try again.",
                    ledger_id, desync,
                )
                return False

            if self._can_apply("delete_ledger"):
                self._ledgers.pop(ledger_id, None)
                self._summaries.forget(ledger_id)
            return True

    # --- Entry mutations ---

    async def add_entry(self, ledger_id: str, entry: Entry) -> Entry:
        """
        Add an entry, then upload its attachments.

        Raises RemoteError if the entry row could not be written.
        Attachments that fail to upload stay pending on the returned
        entry and are reported through notices.
        """
        self.get_ledger(ledger_id)
        if entry.ledger_id not in (None, ledger_id):
            raise ValidationError("Entry belongs to a different ledger")

        result = await self.entry_repository.create(ledger_id, entry)
        self._report_partial("add_entry", result)

        if self._can_apply("add_entry", ledger_id):
            ledger = self._ledgers[ledger_id]
            self._set_entries(ledger_id, (*ledger.entries, result.entry))
        return result.entry

    async def update_entry(self, ledger_id: str, entry: Entry) -> Entry:
        """
        Write the entry's fields remotely, upload still-pending
        attachments, then replace the local copy.

        Raises RemoteError if the update failed; local state is left
        as it was before the call.
        """
        if not entry.id:
            raise ValidationError("Entry has no id")

        async with self._serialized(entry.id):
            ledger = self.get_ledger(ledger_id)
            if ledger.entry(entry.id) is None:
                raise NotFoundError("Entry", entry.id)
            if entry.ledger_id not in (None, ledger_id):
                raise ValidationError("Entries cannot move between ledgers")

            entry = entry.model_copy(update={"ledger_id": ledger_id})
            result = await self.entry_repository.update(entry)
            self._report_partial("update_entry", result)

            if self._can_apply("update_entry", ledger_id):
                current = self._ledgers[ledger_id]
                self._set_entries(ledger_id, (
                    result.entry if e.id == entry.id else e
                    for e in current.entries
                ))
            return result.entry

    async def delete_entry(self, ledger_id: str, entry_id: str) -> bool:
        """
        Remove an entry locally, then remotely.

        Returns False if the remote delete failed; local state has then
        been reloaded from the remote store.
        """
        async with self._serialized(entry_id):
            ledger = self.get_ledger(ledger_id)
            if ledger.entry(entry_id) is None:
                raise NotFoundError("Entry", entry_id)

            self._set_entries(ledger_id, (e for e in ledger.entries if e.id != entry_id))
            try:
                await self.entry_repository.delete(entry_id, ledger_id)
            except RemoteError as exc:
                desync = await self.reconciler.recover("delete_entry", entry_id, exc)
                self._notify(
                    "delete_entry",
                    "Failed to delete entry from cloud. Restoring list...",
                    entry_id, desync,
                )
                return False
            return True

    async def bulk_delete_entries(self, ledger_id: str, entry_ids: Iterable[str]) -> bool:
        """
        Remove several entries locally, then remotely, as one call.

        An empty id set does nothing. Every id must belong to the
        ledger, otherwise NotFoundError is raised before anything
        changes. Returns False if the remote delete failed; local state
        has then been reloaded.
        """
        ids = list(dict.fromkeys(entry_ids))
        if not ids:
            return True

        async with self._serialized(*ids):
            ledger = self.get_ledger(ledger_id)
            for entry_id in ids:
                if ledger.entry(entry_id) is None:
                    raise NotFoundError("Entry", entry_id)
            targets = set(ids)
            self._set_entries(ledger_id, (e for e in ledger.entries if e.id not in targets))
            try:
                await self.entry_repository.delete_many(ids, ledger_id)
            except RemoteError as exc:
                desync = await self.reconciler.recover(
                    "bulk_delete_entries", ledger_id, exc
                )
                self._notify(
                    "bulk_delete_entries",
                    "Failed to delete entries from cloud. Restoring list...",
                    ledger_id, desync,
                )
                return False
            return True

    # --- Local-only ordering ---

    def reorder_entries(self, ledger_id: str, new_order: Sequence[str | Entry]) -> Ledger:
        """
        Put a ledger's entries in the given order.

        Local only: nothing is written remotely, and the next load_all()
        restores date_time order.
        """
        ledger = self.get_ledger(ledger_id)
        ids = [item.id if isinstance(item, Entry) else item for item in new_order]
        by_id = {e.id: e for e in ledger.entries}
        if len(ids) != len(by_id) or set(ids) != set(by_id):
            raise ValidationError("New order must list every entry of the ledger once")

        reordered = ledger.model_copy(update={"entries": tuple(by_id[i] for i in ids)})
        self._ledgers[ledger_id] = reordered
        logger.debug(f"Reordered entries of ledger {ledger_id} (not persisted)")
        return reordered

    def move_entry(self, ledger_id: str, entry_id: str, direction: str) -> bool:
        """
        Swap an entry with its neighbour. direction is "up" or "down".

        Returns False when the entry is already at that edge.
        """
        if direction not in ("up", "down"):
            raise ValidationError(f"Unknown direction {direction!r}")
        ledger = self.get_ledger(ledger_id)
        order = [e.id for e in ledger.entries]
        if entry_id not in order:
            raise NotFoundError("Entry", entry_id)

        index = order.index(entry_id)
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(order):
            return False
        order[index], order[target] = order[target], order[index]
        self.reorder_entries(ledger_id, order)
        return True

    # --- Internals ---

    def _check_name(self, name: str, exclude_id: str | None = None) -> str:
        clean = name.strip() if isinstance(name, str) else ""
        if not clean:
            raise ValidationError("Ledger name cannot be blank")
        for ledger in self._ledgers.values():
            if ledger.id != exclude_id and ledger.name.lower() == clean.lower():
                raise ValidationError(f"A ledger named '{ledger.name}' already exists")
        return clean

    def _set_entries(self, ledger_id: str, entries: Iterable[Entry]) -> None:
        ledger = self._ledgers[ledger_id]
        self._ledgers[ledger_id] = ledger.model_copy(
            update={"entries": sort_entries(entries)}
        )

    def _can_apply(self, operation: str, ledger_id: str | None = None) -> bool:
        if self._detached:
            logger.debug(f"Store detached, dropping result of {operation}")
            return False
        if ledger_id is not None and ledger_id not in self._ledgers:
            logger.debug(f"Ledger {ledger_id} gone, dropping result of {operation}")
            return False
        return True

    def _notify(
        self,
        operation: str,
        message: str,
        entity_id: str | None,
        error: LedgerSyncError,
    ) -> None:
        logger.warning(f"{operation} ({entity_id}): {message} {error}")
        self._notices.append(Notice(operation, message, entity_id, error))

    def _report_partial(self, operation: str, result: EntryWriteResult) -> None:
        for failure in result.failures:
            self._notify(
                operation,
                "An attachment could not be uploaded. Save the entry again to retry.",
                result.entry.id,
                failure,
            )

    @asynccontextmanager
    async def _serialized(self, *entity_ids: str):
        """Hold the per-id locks for entity_ids, acquired in sorted order."""
        ids = sorted(set(entity_ids))
        for entity_id in ids:
            self._pending[entity_id] += 1
        acquired = []
        try:
            for entity_id in ids:
                lock = self._locks.setdefault(entity_id, asyncio.Lock())
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for entity_id in ids:
                self._pending[entity_id] -= 1
                if self._pending[entity_id] <= 0:
                    del self._pending[entity_id]
                    self._locks.pop(entity_id, None)
