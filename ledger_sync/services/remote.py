"""
Failure translation at the remote boundary.

Repositories wrap every store call in remote_call(). Whatever
the transport raises comes out as a single RemoteError naming
the operation, so callers never depend on SQLAlchemy or
filesystem exception types.
"""

import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError

from ledger_sync.exceptions import LedgerSyncError, RemoteError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def remote_call(operation: str, entity_id: str | None = None):
    try:
        yield
    except LedgerSyncError:
        raise
    except (SQLAlchemyError, OSError) as exc:
        logger.error(f"Remote {operation} failed (id={entity_id}): {exc}")
        raise RemoteError(operation, exc) from exc


def missing_row(operation: str, kind: str, entity_id: str) -> RemoteError:
    """
    Error for a write that matched no row.

    Row-level security hides other accounts' rows, so an update
    that touches nothing means the row is gone or not ours.
    """
    logger.error(f"Remote {operation} matched no {kind} row (id={entity_id})")
    return RemoteError(operation, LookupError(f"{kind} {entity_id} not found"))
