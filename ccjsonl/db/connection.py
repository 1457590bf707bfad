"""Database connection factory.

Provides a singleton async connection to SQLite with WAL mode.
Location is controlled by CCJSONL_DB_PATH (or the settings file).
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

import aiosqlite

from ccjsonl import config

logger = logging.getLogger("ccjsonl.db")

_connection: aiosqlite.Connection | None = None


async def open_connection(db_path: str | Path) -> aiosqlite.Connection:
    """Open a configured aiosqlite connection (``:memory:`` is accepted)."""
    db_path = str(db_path)
    if db_path != ":memory:":
        Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        db_path = os.path.expanduser(db_path)
    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    # Enable WAL mode for better concurrent read performance
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def get_connection() -> aiosqlite.Connection:
    """Return the singleton database connection, creating it if needed."""
    global _connection
    if _connection is not None:
        return _connection

    _connection = await open_connection(config.DB_PATH)
    logger.info(f"Database connection established: {config.DB_PATH}")
    return _connection


async def close_connection() -> None:
    """Close the database connection."""
    global _connection
    if _connection is not None:
        await _connection.close()
        _connection = None
        logger.info("Database connection closed")
