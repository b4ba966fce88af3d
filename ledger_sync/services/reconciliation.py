"""
Recovery from rejected optimistic writes.

When a remote write fails after the store already changed its
local copy, the local copy is no longer trustworthy. It is not
patched back field by field; everything is reloaded from the
remote store instead, which is the only source of truth.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from ledger_sync.exceptions import DesyncError, LedgerSyncError, SyncError

logger = logging.getLogger(__name__)


@dataclass
class Notice:
    """A failure the consumer should show to the user."""
    operation: str
    message: str
    entity_id: str | None = None
    error: LedgerSyncError | None = None


class Reconciler:

    def __init__(self, reload: Callable[[], Awaitable[object]]):
        self._reload = reload
        self.resync_count = 0

    async def recover(
        self, operation: str, entity_id: str, cause: BaseException
    ) -> DesyncError:
        """
        Reload authoritative state after a failed optimistic write.

        Returns the DesyncError describing what happened. If the reload
        itself fails, the SyncError is attached to it and the local
        state stays as it was.
        """
        error = DesyncError(operation, entity_id, cause)
        logger.warning(
            f"{operation} on {entity_id} failed remotely, reloading: {cause}"
        )
        self.resync_count += 1

        try:
            await self._reload()
        except SyncError as exc:
            error.resync_error = exc
            logger.error(f"Reload after failed {operation} on {entity_id} failed: {exc}")
        else:
            logger.info(f"Local state resynchronized after failed {operation}")

        return error
