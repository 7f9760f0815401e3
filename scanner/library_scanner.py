"""Library scanner: walks configured media folders and parses every media file.

Scans run synchronously in the calling thread; the HTTP layer starts them on a
daemon thread and polls ``get_progress()``. Subscribers get ``progress``,
``item``, ``complete`` and ``error`` events.
"""
from __future__ import annotations

import errno
import logging
import os
import re
import threading
import time
from datetime import datetime, timezone

from .events import Emitter, Throttle
from .file_parser import is_media_file, parse_filename

logger = logging.getLogger("curatarr")

FOLDER_TYPES = {
    "movies": "movie",
    "series": "series",
    "music": "music",
    "books": "book",
}

SKIP_DIR_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"^\.",            # hidden
        r"^@",             # Synology system folders
        r"^#",             # NAS trash
        r"^node_modules$",
        r"^\.git$",
        r"^\.svn$",
        r"^__MACOSX$",
        r"^Thumbs\.db$",
        r"^desktop\.ini$",
        r"^\$RECYCLE\.BIN$",
        r"^System Volume Information$",
        r"^lost\+found$",
        r"^\.Spotlight-V100$",
        r"^\.fseventsd$",
        r"^\.Trashes$",
        r"^\.TemporaryItems$",
        r"^@eaDir$",
        r"^#recycle$",
    )
]


def should_skip_directory(name: str) -> bool:
    return any(p.search(name) for p in SKIP_DIR_PATTERNS)


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _is_permission_error(exc):
    return isinstance(exc, PermissionError) or getattr(exc, "errno", None) == errno.EACCES


def _idle_progress():
    return {
        "status": "idle",
        "total_files": 0,
        "scanned_files": 0,
        "current_path": None,
        "found_items": 0,
        "errors": [],
        "started_at": None,
        "completed_at": None,
    }


def _sorted_entries(path):
    with os.scandir(path) as it:
        return sorted(it, key=lambda e: e.name)


class LibraryScanner:
    """Stateful scanner; one scan at a time per instance."""

    def __init__(self):
        self._events = Emitter()
        self._abort = threading.Event()
        self._guard = threading.Lock()
        self._throttle = Throttle()
        self._progress = _idle_progress()
        self._items = []

    def on(self, event, callback):
        return self._events.on(event, callback)

    def get_progress(self):
        progress = dict(self._progress)
        progress["errors"] = list(progress["errors"])
        return progress

    def get_scanned_items(self):
        return list(self._items)

    def is_scanning(self):
        return self._progress["status"] == "scanning"

    def abort(self):
        self._abort.set()

    def scan(self, folders):
        """Scan ``folders`` (list of ``{"path", "type"}``) and return a ScanResult."""
        with self._guard:
            if self.is_scanning():
                raise RuntimeError("Scan already in progress")
            self._abort.clear()
            self._items = []
            self._progress = _idle_progress()
            self._progress.update(status="scanning", started_at=_now_iso())

        started = time.monotonic()
        self._emit_progress(force=True)
        logger.info("Library scan started (%d folders)", len(folders))

        try:
            for folder in folders:
                if self._abort.is_set():
                    break
                self._count_files(folder["path"])

            for folder in folders:
                if self._abort.is_set():
                    break
                self._scan_directory(folder["path"], folder.get("type", "movies"), folder["path"])
        except Exception as e:
            self._progress["status"] = "failed"
            self._progress["completed_at"] = _now_iso()
            self._progress["current_path"] = None
            self._progress["errors"].append(str(e))
            self._emit_progress(force=True)
            logger.error("Library scan failed: %s", e)
            self._events.emit("error", e)
            self._events.emit("complete", self._result(False, started, items_added=0))
            raise

        aborted = self._abort.is_set()
        self._progress["status"] = "failed" if aborted else "completed"
        self._progress["completed_at"] = _now_iso()
        self._progress["current_path"] = None
        self._emit_progress(force=True)

        result = self._result(not aborted, started, items_added=len(self._items))
        logger.info(
            "Library scan %s: %d items, %d errors in %dms",
            "aborted" if aborted else "completed",
            result["items_found"], len(result["errors"]), result["duration"],
        )
        self._events.emit("complete", result)
        return result

    def _result(self, success, started, *, items_added):
        return {
            "success": success,
            "items_found": len(self._items),
            "items_added": items_added,
            "items_updated": 0,
            "errors": list(self._progress["errors"]),
            "duration": int((time.monotonic() - started) * 1000),
        }

    def _count_files(self, dir_path):
        if self._abort.is_set():
            return
        try:
            entries = _sorted_entries(dir_path)
        except OSError as e:
            if _is_permission_error(e):
                return
            raise
        for entry in entries:
            if self._abort.is_set():
                break
            try:
                if entry.is_dir(follow_symlinks=False):
                    if not should_skip_directory(entry.name):
                        self._count_files(entry.path)
                elif entry.is_file() and is_media_file(entry.name):
                    self._progress["total_files"] += 1
            except PermissionError:
                continue

    def _scan_directory(self, dir_path, folder_type, root_path):
        if self._abort.is_set():
            return
        try:
            entries = _sorted_entries(dir_path)
        except OSError as e:
            self._progress["errors"].append(f"Error scanning {dir_path}: {e.strerror or e}")
            if _is_permission_error(e):
                logger.warning("Permission denied scanning %s", dir_path)
                return
            raise
        for entry in entries:
            if self._abort.is_set():
                break
            self._progress["current_path"] = entry.path
            if entry.is_dir(follow_symlinks=False):
                if not should_skip_directory(entry.name):
                    self._scan_directory(entry.path, folder_type, root_path)
            elif entry.is_file() and is_media_file(entry.name):
                self._process_file(entry.path, entry.name, folder_type, root_path)

    def _process_file(self, file_path, filename, folder_type, root_path):
        try:
            stats = os.stat(file_path)
        except OSError as e:
            self._progress["scanned_files"] += 1
            self._progress["errors"].append(f"Error processing {file_path}: {e.strerror or e}")
            self._emit_progress()
            return

        parsed = parse_filename(filename)
        if parsed["type"] == "unknown":
            parsed["type"] = FOLDER_TYPES.get(folder_type, "unknown")

        item = {
            "file_path": file_path,
            "root_path": root_path,
            "parsed": parsed,
            "file_size": stats.st_size,
            "modified_at": datetime.fromtimestamp(stats.st_mtime, timezone.utc).isoformat(),
        }
        self._items.append(item)
        self._progress["scanned_files"] += 1
        self._progress["found_items"] += 1
        self._events.emit("item", item)
        self._emit_progress()

    def _emit_progress(self, force=False):
        if self._throttle.ready(force=force or not self.is_scanning()):
            self._events.emit("progress", self.get_progress())
