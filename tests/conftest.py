"""
Shared test fixtures.

Sets up an isolated in-memory database and a temporary blob
bucket so tests never touch real storage. Each test gets a fresh
schema that is dropped afterwards, so no test data persists.
"""

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from ledger_sync.auth import StaticAccountProvider
from ledger_sync.main import create_store
from ledger_sync.models.base import (
    Base,
    create_engine,
    create_session_factory,
    init_models,
)
from ledger_sync.services.attachment_uploader import AttachmentUploader
from ledger_sync.services.entry_repository import EntryRepository
from ledger_sync.services.ledger_repository import LedgerRepository
from ledger_sync.storage.blob_store import FileSystemBlobStore


# In-memory SQLite shared through a single connection, so every
# session in a test sees the same database.
TEST_DATABASE_URL = "sqlite+aiosqlite://"

ACCOUNT_ID = "account-1"


class FlakyBlobStore(FileSystemBlobStore):
    """
    Blob store that fails uploads for chosen file names and counts
    every upload attempt.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_names: set[str] = set()
        self.uploads: list[str] = []

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        self.uploads.append(path)
        if path.rsplit("/", 1)[-1] in self.fail_names:
            raise OSError(f"simulated upload failure for {path}")
        return await super().upload(path, data, content_type)


@pytest_asyncio.fixture
async def engine():
    """Create all tables before each test, drop them after."""
    engine = create_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def account_id():
    return ACCOUNT_ID


@pytest.fixture
def accounts(account_id):
    return StaticAccountProvider(account_id)


@pytest.fixture
def blob_store(tmp_path):
    return FlakyBlobStore(
        root=tmp_path,
        bucket="test-bucket",
        public_base_url="https://files.example.test/storage",
    )


@pytest.fixture
def uploader(session_factory, blob_store):
    return AttachmentUploader(session_factory, blob_store)


@pytest.fixture
def ledger_repository(session_factory, accounts, blob_store):
    return LedgerRepository(session_factory, accounts, blob_store.public_url)


@pytest.fixture
def entry_repository(session_factory, uploader, accounts):
    return EntryRepository(session_factory, uploader, accounts, upload_concurrency=2)


@pytest.fixture
def store(session_factory, accounts, blob_store):
    """A LedgerStore wired the same way the application wires it."""
    return create_store(accounts, session_factory=session_factory, blob_store=blob_store)
