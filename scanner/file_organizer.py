"""File organizer: moves, copies or hardlinks scanned items into the library.

Destinations come from the naming templates. Every per-file problem ends up in
that file's result; only "already organizing" is raised to the caller.
"""
from __future__ import annotations

import errno
import logging
import os
import shutil
import threading
import time

from .events import Emitter, Throttle
from .naming import DEFAULT_NAMING_CONFIG, preview_organized_path

logger = logging.getLogger("curatarr")

OPERATIONS = ("move", "copy", "hardlink")
CONFLICT_RESOLUTIONS = ("skip", "overwrite", "rename")
MAX_RENAME_ATTEMPTS = 100
EXDEV_NOTE = "Hardlink not supported across devices, copied instead"

DESTINATION_KEYS = {
    "series": "series",
    "movie": "movies",
    "music": "music",
    "book": "books",
}


def default_options(**overrides):
    options = {
        "destinations": {},
        "operation": "move",
        "conflict_resolution": "skip",
        "naming_config": None,
        "dry_run": False,
        "cleanup_empty_folders": False,
    }
    options.update(overrides)
    return options


def get_destination_root(media_type, options):
    key = DESTINATION_KEYS.get(media_type)
    if not key:
        return None
    return (options.get("destinations") or {}).get(key) or None


def same_path(a, b):
    return os.path.normcase(os.path.abspath(a)) == os.path.normcase(os.path.abspath(b))


def get_unique_filename(file_path):
    """Return ``file_path`` or the first free ``name (N).ext`` next to it."""
    folder = os.path.dirname(file_path)
    base, ext = os.path.splitext(os.path.basename(file_path))
    candidate = file_path
    counter = 1
    while os.path.lexists(candidate):
        if counter > MAX_RENAME_ATTEMPTS:
            raise RuntimeError(f"Could not find unique filename after {MAX_RENAME_ATTEMPTS} attempts")
        candidate = os.path.join(folder, f"{base} ({counter}){ext}")
        counter += 1
    return candidate


def _strictly_inside(path, root):
    try:
        return path != root and os.path.commonpath([path, root]) == root
    except ValueError:
        return False


def cleanup_empty_folders(folder_path, stop_at=None):
    """Remove ``folder_path`` and its parents for as long as they are empty.

    ``stop_at`` (the scanned library folder) and everything above it is kept.
    """
    current = os.path.abspath(folder_path)
    stop = os.path.abspath(stop_at) if stop_at else None
    while True:
        if stop and not _strictly_inside(current, stop):
            return
        try:
            if os.listdir(current):
                return
            os.rmdir(current)
        except OSError:
            return
        parent = os.path.dirname(current)
        if parent == current:
            return
        current = parent


def _idle_progress():
    return {
        "status": "idle",
        "total_files": 0,
        "processed_files": 0,
        "success_count": 0,
        "skip_count": 0,
        "error_count": 0,
        "current_file": None,
        "errors": [],
    }


class FileOrganizer:
    def __init__(self):
        self._events = Emitter()
        self._abort = threading.Event()
        self._guard = threading.Lock()
        self._throttle = Throttle()
        self._progress = _idle_progress()
        self._results = []

    def on(self, event, callback):
        return self._events.on(event, callback)

    def get_progress(self):
        progress = dict(self._progress)
        progress["errors"] = list(progress["errors"])
        return progress

    def get_results(self):
        return list(self._results)

    def is_organizing(self):
        return self._progress["status"] == "organizing"

    def abort(self):
        self._abort.set()

    def preview_organization(self, items, options):
        """Where each item would go. Touches nothing on disk."""
        options = default_options(**options)
        options["dry_run"] = True
        return [self._safe_plan(item, options)[0] for item in items]

    def organize(self, items, options):
        options = default_options(**options)
        with self._guard:
            if self.is_organizing():
                raise RuntimeError("Organization already in progress")
            self._abort.clear()
            self._results = []
            self._progress = _idle_progress()
            self._progress.update(status="organizing", total_files=len(items))

        started = time.monotonic()
        counts = {"move": 0, "copy": 0, "hardlink": 0, "skipped": 0, "failed": 0}
        self._emit_progress(force=True)
        logger.info(
            "Organizing %d files (operation=%s, dry_run=%s)",
            len(items), options["operation"], options["dry_run"],
        )

        try:
            for item in items:
                if self._abort.is_set():
                    break
                self._progress["current_file"] = item["file_path"]
                self._emit_progress()

                result = self._process_item(item, options)
                self._results.append(result)

                status = result["status"]
                if status == "success":
                    self._progress["success_count"] += 1
                    counts[result["operation"]] = counts.get(result["operation"], 0) + 1
                elif status in ("skipped", "conflict"):
                    self._progress["skip_count"] += 1
                    counts["skipped"] += 1
                elif status == "failed":
                    self._progress["error_count"] += 1
                    counts["failed"] += 1
                    if result.get("error"):
                        self._progress["errors"].append(result["error"])

                self._progress["processed_files"] += 1
                self._events.emit("file", result)
                self._emit_progress()

            self._progress["status"] = "failed" if self._abort.is_set() else "completed"
        except Exception as e:
            logger.error("Organize run failed: %s", e)
            self._progress["status"] = "failed"
            self._progress["errors"].append(str(e))
            self._events.emit("error", e)
        self._progress["current_file"] = None
        self._emit_progress(force=True)

        summary = {
            "success": self._progress["status"] == "completed",
            "total_processed": self._progress["processed_files"],
            "moved": counts["move"],
            "copied": counts["copy"],
            "hardlinked": counts["hardlink"],
            "skipped": counts["skipped"],
            "failed": counts["failed"],
            "results": list(self._results),
            "duration": int((time.monotonic() - started) * 1000),
        }
        logger.info(
            "Organize finished: moved=%d copied=%d hardlinked=%d skipped=%d failed=%d",
            summary["moved"], summary["copied"], summary["hardlinked"],
            summary["skipped"], summary["failed"],
        )
        self._events.emit("complete", summary)
        return summary

    def _plan_item(self, item, options):
        """Returns (result, folder_path). A result with status "planned" needs I/O."""
        source = item["file_path"]
        parsed = item["parsed"]
        operation = options["operation"]
        root = get_destination_root(parsed.get("type"), options)
        if not root:
            return {
                "source_path": source,
                "destination_path": "",
                "operation": operation,
                "status": "skipped",
                "error": f"No destination configured for type: {parsed.get('type')}",
            }, None

        target = preview_organized_path(parsed, root, options.get("naming_config") or DEFAULT_NAMING_CONFIG)
        result = {
            "source_path": source,
            "destination_path": target["full_path"],
            "operation": operation,
            "status": "planned",
        }
        if same_path(source, target["full_path"]):
            result.update(status="skipped", error="File already in correct location")
        elif options.get("dry_run"):
            result["status"] = "dry-run"
        return result, target["folder_path"]

    def _safe_plan(self, item, options):
        try:
            return self._plan_item(item, options)
        except Exception as e:
            logger.warning("Could not plan destination for %s: %s", item.get("file_path"), e)
            return {
                "source_path": item.get("file_path", ""),
                "destination_path": "",
                "operation": options.get("operation", "move"),
                "status": "failed",
                "error": str(e),
            }, None

    def _process_item(self, item, options):
        result, folder_path = self._safe_plan(item, options)
        if result["status"] != "planned":
            return result

        destination = result["destination_path"]
        try:
            if os.path.lexists(destination):
                resolution = options.get("conflict_resolution", "skip")
                if resolution == "rename":
                    destination = get_unique_filename(destination)
                elif resolution == "overwrite":
                    os.remove(destination)
                else:
                    result.update(
                        status="conflict",
                        conflict_action="skip",
                        error="Destination file already exists",
                    )
                    return result
            return self._execute(item["file_path"], destination, folder_path, options, item.get("root_path"))
        except Exception as e:
            logger.warning("Organize failed for %s: %s", item["file_path"], e)
            result.update(status="failed", error=str(e))
            return result

    def _execute(self, source, destination, folder_path, options, root_path=None):
        os.makedirs(folder_path, exist_ok=True)
        operation = options["operation"]
        result = {
            "source_path": source,
            "destination_path": destination,
            "operation": operation,
            "status": "success",
        }
        if operation == "move":
            shutil.move(source, destination)
            if options.get("cleanup_empty_folders"):
                cleanup_empty_folders(os.path.dirname(source), stop_at=root_path)
        elif operation == "copy":
            shutil.copy2(source, destination)
        elif operation == "hardlink":
            try:
                os.link(source, destination)
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise
                shutil.copy2(source, destination)
                result.update(operation="copy", error=EXDEV_NOTE)
        else:
            raise ValueError(f"Unknown operation: {operation}")
        return result

    def _emit_progress(self, force=False):
        if self._throttle.ready(force=force or not self.is_organizing()):
            self._events.emit("progress", self.get_progress())
