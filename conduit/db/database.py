"""Async SQLAlchemy engine factory for the local SQLite store."""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{Path(path).expanduser()}"


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine with SQLite foreign keys enforced on every connection."""
    engine = create_async_engine(url, echo=echo)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables. Safe to call repeatedly."""
    from conduit.db.models import Base
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
