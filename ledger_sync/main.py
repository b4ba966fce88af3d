"""
Ledger Sync wiring.

Builds a ready-to-use LedgerStore from settings. The consumer
supplies the account provider; everything else comes from the
environment.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger_sync.auth import AccountProvider
from ledger_sync.config import get_settings
from ledger_sync.models.base import (
    create_session_factory,
    engine_from_settings,
)
from ledger_sync.services.attachment_uploader import AttachmentUploader
from ledger_sync.services.entry_repository import EntryRepository
from ledger_sync.services.ledger_repository import LedgerRepository
from ledger_sync.services.ledger_store import LedgerStore
from ledger_sync.storage.blob_store import BlobStore, FileSystemBlobStore

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging from LOG_LEVEL unless a level is given."""
    settings = get_settings()
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )


def blob_store_from_settings() -> FileSystemBlobStore:
    settings = get_settings()
    return FileSystemBlobStore(
        root=settings.STORAGE_ROOT,
        bucket=settings.STORAGE_BUCKET,
        public_base_url=settings.STORAGE_PUBLIC_URL,
    )


def create_store(
    accounts: AccountProvider,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    blob_store: BlobStore | None = None,
) -> LedgerStore:
    """
    Assemble repositories, uploader and store.

    session_factory and blob_store default to the ones configured
    by DATABASE_URL and the STORAGE_* settings.
    """
    settings = get_settings()
    if session_factory is None:
        session_factory = create_session_factory(engine_from_settings())
    if blob_store is None:
        blob_store = blob_store_from_settings()

    uploader = AttachmentUploader(session_factory, blob_store)
    return LedgerStore(
        ledger_repository=LedgerRepository(
            session_factory, accounts, blob_store.public_url
        ),
        entry_repository=EntryRepository(
            session_factory,
            uploader,
            accounts,
            upload_concurrency=settings.UPLOAD_CONCURRENCY,
        ),
    )
