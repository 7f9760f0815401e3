"""SQLite schema migrations for Curatarr.

Lightweight internal migration registry so future schema changes are applied
deterministically without requiring Alembic.
"""
from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger("curatarr")


MIGRATIONS = [
    ("0001_library_tables", "Create library items/activity tables + indexes", "library_tables"),
    ("0002_library_item_timestamps", "Ensure library_items modified/updated timestamps exist", "library_item_timestamps"),
]


def _ensure_migrations_table(conn: sqlite3.Connection):
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            name TEXT PRIMARY KEY,
            description TEXT NOT NULL,
            applied_at REAL DEFAULT (strftime('%s','now'))
        )
        """
    )


def apply_migrations(conn: sqlite3.Connection) -> int:
    """Apply any pending migrations to the provided SQLite connection."""
    _ensure_migrations_table(conn)
    applied = 0
    for name, description, handler in MIGRATIONS:
        exists = conn.execute(
            "SELECT 1 FROM schema_migrations WHERE name = ?",
            (name,),
        ).fetchone()
        if exists:
            continue
        _HANDLERS[handler](conn)
        conn.execute(
            "INSERT INTO schema_migrations (name, description) VALUES (?, ?)",
            (name, description),
        )
        applied += 1
        logger.info("Applied DB migration %s", name)
    conn.commit()
    return applied


def get_migration_status(conn: sqlite3.Connection):
    """Return applied migration names and counts for diagnostics/tests."""
    _ensure_migrations_table(conn)
    rows = conn.execute(
        "SELECT name, description, applied_at FROM schema_migrations ORDER BY applied_at, name"
    ).fetchall()
    return [{"name": r[0], "description": r[1], "applied_at": r[2]} for r in rows]


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table,),
    ).fetchone()
    return row is not None


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    if not _table_exists(conn, table):
        return False
    cols = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(c[1] == column for c in cols)


def _migrate_library_tables(conn: sqlite3.Connection):
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS library_items (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            kind        TEXT NOT NULL,
            title       TEXT NOT NULL,
            year        INTEGER DEFAULT NULL,
            quality     TEXT DEFAULT '',
            source      TEXT DEFAULT '',
            file_path   TEXT DEFAULT '',
            file_size   INTEGER DEFAULT 0,
            added_at    REAL DEFAULT (strftime('%s','now')),
            metadata    TEXT DEFAULT '{}'
        );

        CREATE TABLE IF NOT EXISTS activity_log (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp   REAL DEFAULT (strftime('%s','now')),
            event_type  TEXT NOT NULL,
            title       TEXT DEFAULT '',
            detail      TEXT DEFAULT '',
            library_item_id INTEGER DEFAULT NULL,
            job_id      TEXT DEFAULT ''
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_library_kind_title ON library_items(kind, title COLLATE NOCASE)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_activity_timestamp ON activity_log(timestamp)")


def _migrate_library_item_timestamps(conn: sqlite3.Connection):
    if not _table_exists(conn, "library_items"):
        _migrate_library_tables(conn)
    if not _column_exists(conn, "library_items", "modified_at"):
        conn.execute("ALTER TABLE library_items ADD COLUMN modified_at TEXT DEFAULT ''")
    if not _column_exists(conn, "library_items", "updated_at"):
        conn.execute("ALTER TABLE library_items ADD COLUMN updated_at REAL DEFAULT NULL")


_HANDLERS = {
    "library_tables": _migrate_library_tables,
    "library_item_timestamps": _migrate_library_item_timestamps,
}
