"""Library tracking database: scanned media items and the activity log."""
import json
import logging
import os
import sqlite3
import threading
import time

from db_migrations import apply_migrations

logger = logging.getLogger("curatarr")

# Parsed filename type -> library kind. Unrecognised files land as movies.
KIND_MAP = {
    "movie": "movie",
    "series": "series",
    "music": "music",
    "book": "book",
    "unknown": "movie",
}

_METADATA_FIELDS = (
    "original_filename", "codec", "season", "episode", "episode_title",
    "artist", "album", "track", "author",
)


def scanned_to_library_item(scanned):
    """Convert a scanner ``ScannedItem`` dict into a library item row."""
    parsed = scanned["parsed"]
    title = parsed.get("title") or ""
    if parsed.get("type") == "music" and parsed.get("artist"):
        title = f"{parsed['artist']} - {title}"
    elif parsed.get("type") == "book" and parsed.get("author"):
        title = f"{parsed['author']} - {title}"
    return {
        "kind": KIND_MAP.get(parsed.get("type"), "movie"),
        "title": title,
        "year": parsed.get("year"),
        "quality": parsed.get("quality") or "",
        "source": parsed.get("source") or "",
        "file_path": scanned.get("file_path", ""),
        "file_size": scanned.get("file_size", 0),
        "modified_at": scanned.get("modified_at", ""),
        "metadata": {k: parsed[k] for k in _METADATA_FIELDS if parsed.get(k) is not None},
    }


def _row_to_item(row):
    item = dict(row)
    try:
        item["metadata"] = json.loads(item.get("metadata") or "{}")
    except json.JSONDecodeError:
        item["metadata"] = {}
    return item


class LibraryDB:
    """SQLite-backed library tracking with activity log.

    Thread-safe via locking.
    """

    def __init__(self, db_path):
        self._db_path = db_path
        self._lock = threading.Lock()
        folder = os.path.dirname(db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        self._init_db()

    def _connect(self):
        conn = sqlite3.connect(self._db_path, timeout=10)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        with self._connect() as conn:
            apply_migrations(conn)

    # --- Library Items ---

    def add_item(self, kind, title, year=None, quality="", source="",
                 file_path="", file_size=0, modified_at="", metadata=None):
        """Insert a library item. Returns the new item ID."""
        with self._lock:
            with self._connect() as conn:
                return self._insert(conn, {
                    "kind": kind, "title": title, "year": year,
                    "quality": quality, "source": source,
                    "file_path": file_path, "file_size": file_size,
                    "modified_at": modified_at, "metadata": metadata or {},
                })

    def _insert(self, conn, item):
        cur = conn.execute(
            """INSERT INTO library_items
               (kind, title, year, quality, source, file_path, file_size,
                modified_at, metadata, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (item["kind"], item["title"], item.get("year"), item.get("quality", ""),
             item.get("source", ""), item.get("file_path", ""), item.get("file_size", 0),
             item.get("modified_at", ""), json.dumps(item.get("metadata") or {}), time.time()),
        )
        return cur.lastrowid

    def _update(self, conn, item_id, item):
        conn.execute(
            """UPDATE library_items
               SET title = ?, year = ?, quality = ?, source = ?, file_path = ?,
                   file_size = ?, modified_at = ?, metadata = ?, updated_at = ?
               WHERE id = ?""",
            (item["title"], item.get("year"), item.get("quality", ""), item.get("source", ""),
             item.get("file_path", ""), item.get("file_size", 0), item.get("modified_at", ""),
             json.dumps(item.get("metadata") or {}), time.time(), item_id),
        )

    def merge_scanned_items(self, scanned_items):
        """Merge scanner output into the library.

        An existing item with the same kind and (case-insensitive) title is
        updated in place and keeps its ID; anything else is inserted.
        Returns ``(added, updated)``.
        """
        added = updated = 0
        with self._lock:
            with self._connect() as conn:
                for scanned in scanned_items:
                    item = scanned_to_library_item(scanned)
                    row = conn.execute(
                        "SELECT id FROM library_items WHERE kind = ? AND title = ? COLLATE NOCASE",
                        (item["kind"], item["title"]),
                    ).fetchone()
                    if row:
                        self._update(conn, row["id"], item)
                        updated += 1
                    else:
                        self._insert(conn, item)
                        added += 1
        return added, updated

    def get_item(self, item_id):
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM library_items WHERE id = ?", (item_id,)).fetchone()
            return _row_to_item(row) if row else None

    def find_by_title(self, title, kind=None):
        """Case-insensitive title lookup for duplicate detection."""
        query = "SELECT * FROM library_items WHERE title = ? COLLATE NOCASE"
        params = [title]
        if kind:
            query += " AND kind = ?"
            params.append(kind)
        with self._connect() as conn:
            return [_row_to_item(row) for row in conn.execute(query, params).fetchall()]

    def get_items(self, kind=None, limit=50, offset=0):
        """Paginated list of library items, newest first."""
        query = "SELECT * FROM library_items"
        params = []
        if kind:
            query += " WHERE kind = ?"
            params.append(kind)
        query += " ORDER BY added_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        with self._connect() as conn:
            return [_row_to_item(row) for row in conn.execute(query, params).fetchall()]

    def count_items(self, kind=None):
        """Count library items, optionally filtered by kind."""
        query = "SELECT COUNT(*) FROM library_items"
        params = []
        if kind:
            query += " WHERE kind = ?"
            params.append(kind)
        with self._connect() as conn:
            return conn.execute(query, params).fetchone()[0]

    def relocate(self, old_path, new_path):
        """Point items at a file's new location after it was moved."""
        with self._lock:
            with self._connect() as conn:
                return conn.execute(
                    "UPDATE library_items SET file_path = ?, updated_at = ? WHERE file_path = ?",
                    (new_path, time.time(), old_path),
                ).rowcount

    def delete_item(self, item_id):
        with self._lock:
            with self._connect() as conn:
                return conn.execute("DELETE FROM library_items WHERE id = ?", (item_id,)).rowcount > 0

    # --- Activity Log ---

    def log_event(self, event_type, title="", detail="",
                  library_item_id=None, job_id=""):
        """Append an event to the activity log."""
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO activity_log
                       (event_type, title, detail, library_item_id, job_id)
                       VALUES (?, ?, ?, ?, ?)""",
                    (event_type, title, detail, library_item_id, job_id),
                )

    def get_activity(self, limit=50, offset=0):
        """Recent activity, newest first."""
        with self._connect() as conn:
            return [dict(row) for row in conn.execute(
                "SELECT * FROM activity_log ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()]

    def count_activity(self):
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM activity_log").fetchone()[0]

    def cleanup_activity(self, days: int = 90) -> int:
        """Delete activity log entries older than `days` days."""
        cutoff = time.time() - days * 86400
        with self._lock:
            with self._connect() as conn:
                deleted = conn.execute(
                    "DELETE FROM activity_log WHERE timestamp < ?",
                    (cutoff,)
                ).rowcount
        if deleted:
            logger.info("Pruned %d old activity log entries (>%dd)", deleted, days)
        return deleted
