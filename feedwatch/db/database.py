"""SQLite database setup and table creation."""

from typing import Optional

import aiosqlite

from feedwatch.config import DB_PATH


async def get_db(path: Optional[str] = None) -> aiosqlite.Connection:
    db = await aiosqlite.connect(path or DB_PATH)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    return db


async def init_db(path: Optional[str] = None):
    """Create the key-value table on startup if it doesn't exist."""
    db = await get_db(path)
    try:
        await db.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
        """)
        await db.commit()
    finally:
        await db.close()
