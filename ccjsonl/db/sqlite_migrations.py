"""Database schema creation and versioning.

All CREATE TABLE statements for the ingestion store.
Uses IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("ccjsonl.db")

SCHEMA_VERSION = 3

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── 1. Projects ────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS projects (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    path        TEXT NOT NULL UNIQUE,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

-- ── 2. Sessions ────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS sessions (
    id               TEXT PRIMARY KEY,
    project_id       TEXT REFERENCES projects(id) ON DELETE CASCADE,
    name             TEXT,
    cwd              TEXT NOT NULL DEFAULT '/tmp',
    last_message_at  TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project_id, created_at);

-- ── 3. Messages ────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS messages (
    id           TEXT PRIMARY KEY,
    session_id   TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    role         TEXT NOT NULL,
    content      TEXT,
    timestamp    TEXT NOT NULL,
    raw_data     TEXT NOT NULL,
    uuid         TEXT NOT NULL UNIQUE,
    parent_uuid  TEXT,
    cwd          TEXT NOT NULL DEFAULT '',
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id, timestamp);

-- ── 4. Log file tracking (incremental change detection) ───────────
CREATE TABLE IF NOT EXISTS log_file_tracking (
    id                 TEXT PRIMARY KEY,
    file_path          TEXT NOT NULL UNIQUE,
    last_processed_at  TEXT NOT NULL,
    file_size          INTEGER,
    file_modified_at   REAL,
    checksum           TEXT,
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL
);
"""


async def _ensure_column(db: aiosqlite.Connection, table: str, column: str, definition: str) -> None:
    async with db.execute(f"PRAGMA table_info({table})") as cur:
        columns = {row[1] for row in await cur.fetchall()}
    if column not in columns:
        await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables. Idempotent."""
    # Check current schema version
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.OperationalError:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current_version})")
        return

    logger.info(f"Running migrations: {current_version} → {SCHEMA_VERSION}")

    await db.executescript(_TABLES)

    # Explicit table upgrades for existing DBs.
    await _ensure_column(db, "sessions", "name", "TEXT")
    await _ensure_column(db, "sessions", "last_message_at", "TEXT")
    await _ensure_column(db, "log_file_tracking", "file_modified_at", "REAL")
    await _ensure_column(db, "log_file_tracking", "checksum", "TEXT")

    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info(f"Migrations complete, schema version {SCHEMA_VERSION}")
