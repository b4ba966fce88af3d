"""
Database engine, session factory, and base model.

The relational store is reached through SQLAlchemy's asyncio
extension. Every storage model inherits from Base. Repositories
receive a session factory and open one short-lived session per
remote call.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ledger_sync.config import get_settings


# --- Base Model Class ---
# Every storage model (LedgerRow, EntryRow, AttachmentRow)
# inherits from this class so Base.metadata knows all tables.
class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES clauses unless this pragma is set
    # on every new connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str, **kwargs) -> AsyncEngine:
    """
    Build an async engine for the given URL.

    SQLite engines get foreign key enforcement switched on so
    child rows must be removed before their parents, the same
    as on the production database.
    """
    engine = create_async_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Return a session factory bound to the engine.

    expire_on_commit=False keeps loaded rows readable after the
    transaction commits, which the repositories rely on when they
    map rows into domain models.
    """
    return async_sessionmaker(bind=engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def engine_from_settings() -> AsyncEngine:
    """Create the engine configured by DATABASE_URL."""
    settings = get_settings()
    return create_engine(settings.DATABASE_URL, pool_pre_ping=True)
