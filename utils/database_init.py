import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import aiosqlite


DATABASE_FILENAME = "planner.db"

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS business_planner_sessions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        context_json TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'active',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_sessions_user_updated
        ON business_planner_sessions(user_id, updated_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS business_planner_conversations (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        tokens_used INTEGER NOT NULL DEFAULT 0,
        seq INTEGER NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_conversations_session_seq
        ON business_planner_conversations(session_id, seq)
    """,
    """
    CREATE TABLE IF NOT EXISTS business_planner_usage (
        user_id TEXT PRIMARY KEY,
        free_conversations_used INTEGER NOT NULL DEFAULT 0,
        paid_conversations_used INTEGER NOT NULL DEFAULT 0,
        total_tokens_used INTEGER NOT NULL DEFAULT 0,
        subscription_status TEXT NOT NULL DEFAULT 'free',
        last_reset_date TEXT NOT NULL
    )
    """,
)


def resolve_database_dir(db_dir: Optional[Union[Path, str]] = None) -> Path:
    """Return the directory holding the planner database, creating it if needed.

    ``db_dir`` wins over the ``DATABASE_DIR`` environment variable. A missing
    setting, or a path that names a regular file, is a RuntimeError.
    """
    configured = str(db_dir) if db_dir is not None else os.getenv("DATABASE_DIR")
    if not configured or not configured.strip():
        raise RuntimeError("DATABASE_DIR must name a writable directory for the planner database.")

    directory = Path(configured).expanduser()
    if directory.exists() and not directory.is_dir():
        raise RuntimeError(f"DATABASE_DIR={configured!r} is a file, expected a directory.")
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(f"Cannot create database directory {directory}") from exc
    return directory


class AsyncDatabaseInitializer:
    """
    Own the SQLite file at ``<DATABASE_DIR>/planner.db``.

    Tables are created if missing the first time `ensure_database()` runs on
    an instance; existing rows are kept across restarts. `connection()` calls
    `ensure_database()` itself, so DAL classes never need to.
    """

    def __init__(self, db_dir: Optional[Union[Path, str]] = None) -> None:
        self.db_dir = resolve_database_dir(db_dir)
        self.db_path = self.db_dir / DATABASE_FILENAME
        self._ready = False
        self._lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        if self._ready:
            return
        async with self._lock:
            if self._ready:
                return
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("PRAGMA journal_mode=WAL")
                for statement in SCHEMA:
                    await db.execute(statement)
                await db.commit()
            self._ready = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a fresh `aiosqlite.Connection`, closed when the block exits."""
        await self.ensure_database()
        async with aiosqlite.connect(self.db_path) as conn:
            yield conn
