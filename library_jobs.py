"""Background work started by the HTTP layer: scans, organize runs, phase verification."""
from __future__ import annotations

import secrets
import threading
from datetime import datetime, timezone

from scanner.file_parser import is_video_file
from verify_store import result_key

SCAN_VERIFY_PRIORITY = 3


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def start_thread(target, *args, **kwargs):
    t = threading.Thread(target=target, args=args, kwargs=kwargs, daemon=True)
    t.start()
    return t


def run_library_scan(scanner, folders, *, library, telemetry, logger, verify_queue=None, verify_on_scan=False):
    """Scan ``folders`` and merge the results into the library.

    Returns the scan result with real added/updated counts, or None when the
    scan could not run at all.
    """
    try:
        result = scanner.scan(folders)
    except Exception as e:
        telemetry.metrics.inc("curatarr_scans_total", result="error")
        library.log_event("scan_failed", detail=str(e))
        logger.error("Scan failed: %s", e)
        return None

    if not result["success"]:
        telemetry.metrics.inc("curatarr_scans_total", result="aborted")
        library.log_event("scan_aborted", detail=f"{result['items_found']} items found before abort")
        return result

    items = scanner.get_scanned_items()
    added, updated = library.merge_scanned_items(items)
    result = dict(result, items_added=added, items_updated=updated)

    telemetry.metrics.inc("curatarr_scans_total", result="completed")
    telemetry.metrics.inc("curatarr_scan_items_total", amount=result["items_found"])
    telemetry.emit_event("scan_completed", {
        "items_found": result["items_found"],
        "items_added": added,
        "items_updated": updated,
        "errors": len(result["errors"]),
        "duration_ms": result["duration"],
    })
    library.log_event(
        "scan_completed",
        detail=f"{result['items_found']} found, {added} added, {updated} updated",
    )
    logger.info("Scan merged into library: %d added, %d updated", added, updated)

    if verify_on_scan and verify_queue is not None:
        queued = 0
        for item in items:
            if not is_video_file(item["file_path"]):
                continue
            parsed = item["parsed"]
            verify_queue.add_job(
                "file",
                item["file_path"],
                {"expected_title": parsed.get("title"), "expected_quality": parsed.get("quality")},
                {"source": "scan", "title": parsed.get("title")},
                SCAN_VERIFY_PRIORITY,
            )
            queued += 1
        if queued:
            logger.info("Queued %d scanned videos for verification", queued)
    return result


def run_organize(organizer, items, options, *, library, telemetry, logger):
    """Organize ``items`` and keep library file paths in step with moved files."""
    try:
        summary = organizer.organize(items, options)
    except Exception as e:
        telemetry.metrics.inc("curatarr_organize_runs_total", mode="run", result="error")
        library.log_event("organize_failed", detail=str(e))
        logger.error("Organization failed: %s", e)
        return None

    dry_run = bool(options.get("dry_run"))
    for result in summary["results"]:
        telemetry.metrics.inc(
            "curatarr_organize_files_total",
            operation=result.get("operation", "unknown"),
            status=result["status"],
        )
        if not dry_run and result["status"] == "success" and result.get("operation") == "move":
            library.relocate(result["source_path"], result["destination_path"])

    telemetry.metrics.inc(
        "curatarr_organize_runs_total",
        mode="dry_run" if dry_run else "run",
        result="completed" if summary["success"] else "aborted",
    )
    counts = {k: summary[k] for k in ("moved", "copied", "hardlinked", "skipped", "failed")}
    telemetry.emit_event("organize_completed", dict(counts, dry_run=dry_run, duration_ms=summary["duration"]))
    library.log_event(
        "organize_dry_run" if dry_run else "organize_completed",
        detail=", ".join(f"{v} {k}" for k, v in counts.items()),
    )
    return summary


def make_verify_result_recorder(store, logger):
    """Queue listener persisting results for jobs tied to a library item."""

    def _record(job):
        metadata = job.get("metadata") or {}
        kind, item_id = metadata.get("kind"), metadata.get("item_id")
        if job["status"] != "completed" or not kind or item_id is None:
            return
        record = dict(job.get("result") or {})
        record.update({"kind": kind, "id": str(item_id), "job_id": job["id"], "path": job["path"]})
        try:
            store.save(result_key(kind, item_id), record)
        except OSError as e:
            logger.error("Could not save verify result for %s:%s: %s", kind, item_id, e)

    return _record


class PhaseVerifyJobs:
    """In-memory jobs running ``verify_checks.run_verify`` off the request thread."""

    def __init__(self, *, run_verify, store, logger, settings=None, spawn=start_thread):
        self._run_verify = run_verify
        self._store = store
        self._logger = logger
        self._settings = settings or (lambda: {})
        self._spawn = spawn
        self._jobs = {}
        self._lock = threading.Lock()

    def submit(self, phase, kind, item_id, title="", path=None):
        job_id = secrets.token_hex(6)
        job_input = {"phase": phase or "all", "kind": kind, "id": str(item_id), "title": title}
        if path:
            job_input["path"] = path
        with self._lock:
            self._jobs[job_id] = {
                "id": job_id,
                "status": "queued",
                "input": job_input,
                "result": None,
                "error": None,
                "enqueued_at": _now_iso(),
                "finished_at": None,
            }
        self._spawn(self._run, job_id)
        return job_id

    def get(self, job_id):
        with self._lock:
            job = self._jobs.get(job_id)
            return dict(job) if job else None

    def _run(self, job_id):
        with self._lock:
            job = self._jobs[job_id]
            job["status"] = "running"
            job_input = dict(job["input"])
        try:
            result = self._run_verify(dict(job_input, settings=self._settings()))
            self._store.save(result_key(job_input["kind"], job_input["id"]), dict(result, **job_input))
        except Exception as e:
            self._logger.warning("Phase verification %s failed: %s", job_id, e)
            with self._lock:
                job.update(status="failed", error=str(e), finished_at=_now_iso())
            return
        with self._lock:
            job.update(status="completed", result=result, finished_at=_now_iso())
