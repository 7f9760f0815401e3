"""Background verification queue.

Jobs are plain dicts kept in memory. A single loop thread picks the highest
priority queued job whenever fewer than ``max_concurrent`` are running and
hands it to a worker thread; the loop exits once nothing is queued or
running, and the next ``add_job`` starts a fresh one.
"""
from __future__ import annotations

import itertools
import logging
import secrets
import threading
import time

import content_verify
import security_scan
from job_events import job_transition_allowed

logger = logging.getLogger("curatarr")

JOB_TYPES = ("file", "folder")
JOB_SOURCES = ("download", "import", "manual", "scan")
STATUS_ORDER = {"running": 0, "queued": 1, "completed": 2, "failed": 3}
DEFAULT_PRIORITY = 5
DEFAULT_MAX_CONCURRENT = 2
DEFAULT_POLL_INTERVAL_SEC = 0.5
DEFAULT_RETENTION_SEC = 24 * 60 * 60
HOUSEKEEPING_INTERVAL_SEC = 60 * 60


def _new_job_id():
    return f"verify-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def _scan_folder(path):
    return security_scan.scan_directory(path, True)


class VerifyQueue:
    def __init__(
        self,
        *,
        verify_file=None,
        verify_folder=None,
        max_concurrent=DEFAULT_MAX_CONCURRENT,
        poll_interval=DEFAULT_POLL_INTERVAL_SEC,
        retention_sec=DEFAULT_RETENTION_SEC,
        record_transition=None,
        record_invalid_transition=None,
    ):
        self._verify_file = verify_file or content_verify.verify_content
        self._verify_folder = verify_folder or _scan_folder
        self.max_concurrent = max(1, int(max_concurrent))
        self.poll_interval = poll_interval
        self.retention_sec = retention_sec
        self._record_transition = record_transition
        self._record_invalid_transition = record_invalid_transition

        self._jobs = {}
        self._order = {}
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._processing = False
        self._running = 0
        self._listeners = []
        self._listeners_lock = threading.Lock()
        self._housekeeping_started = False

    # --- Enqueue ---

    def add_job(self, job_type, path, options=None, metadata=None, priority=DEFAULT_PRIORITY):
        if job_type not in JOB_TYPES:
            raise ValueError(f"Unknown job type: {job_type}")
        job_id = _new_job_id()
        job = {
            "id": job_id,
            "type": job_type,
            "path": path,
            "options": dict(options or {}),
            "status": None,
            "priority": int(priority),
            "created_at": time.time(),
            "started_at": None,
            "completed_at": None,
            "result": None,
            "error": None,
            "metadata": dict(metadata) if metadata else None,
        }
        with self._lock:
            self._jobs[job_id] = job
            self._order[job_id] = next(self._seq)
            self._set_status(job, "queued")
            start_loop = not self._processing
            self._processing = True
        self._wake.set()
        if start_loop:
            threading.Thread(target=self._process_loop, name="verify-queue", daemon=True).start()
        return job_id

    def add_batch(self, files, options=None, priority=DEFAULT_PRIORITY):
        """Queue a file job per ``{"path", "metadata"?}`` entry."""
        return [
            self.add_job("file", f["path"], options, f.get("metadata"), priority)
            for f in files
        ]

    # --- Queries ---

    def get_job(self, job_id):
        with self._lock:
            job = self._jobs.get(job_id)
            return dict(job) if job else None

    def get_all_jobs(self):
        with self._lock:
            jobs = [(dict(j), self._order[j["id"]]) for j in self._jobs.values()]
        jobs.sort(key=lambda pair: (STATUS_ORDER.get(pair[0]["status"], 9), -pair[0]["priority"], pair[1]))
        return [job for job, _ in jobs]

    def get_status(self):
        with self._lock:
            statuses = [j["status"] for j in self._jobs.values()]
            processing = self._processing
        return {
            "total_jobs": len(statuses),
            "queued_jobs": statuses.count("queued"),
            "running_jobs": statuses.count("running"),
            "completed_jobs": statuses.count("completed"),
            "failed_jobs": statuses.count("failed"),
            "is_processing": processing,
        }

    def get_results(self):
        results = []
        for job in self.get_all_jobs():
            result = job.get("result")
            if job["status"] != "completed" or not result:
                continue
            passed = result.get("passed")
            if passed is None:
                passed = result.get("safe", True)
            results.append({
                "id": job["id"],
                "path": job["path"],
                "passed": passed,
                "issue_count": len(result.get("issues") or []),
                "security_issue_count": len(result.get("security_issues") or []),
                "metadata": job.get("metadata"),
            })
        return results

    # --- Mutation ---

    def cancel_job(self, job_id):
        """Remove a job that hasn't started. Running/finished jobs are left alone."""
        with self._lock:
            job = self._jobs.get(job_id)
            if not job or job["status"] != "queued":
                return False
            del self._jobs[job_id]
            self._order.pop(job_id, None)
            return True

    def clear_completed(self):
        with self._lock:
            done = [jid for jid, j in self._jobs.items() if j["status"] in ("completed", "failed")]
            for jid in done:
                del self._jobs[jid]
                self._order.pop(jid, None)
        return len(done)

    def sweep_expired(self, now=None):
        """Drop finished jobs whose ``completed_at`` is older than the retention window."""
        cutoff = (now if now is not None else time.time()) - self.retention_sec
        with self._lock:
            expired = [
                jid for jid, j in self._jobs.items()
                if j["status"] in ("completed", "failed") and (j.get("completed_at") or 0) < cutoff
            ]
            for jid in expired:
                del self._jobs[jid]
                self._order.pop(jid, None)
        if expired:
            logger.info("Pruned %d expired verification jobs", len(expired))
        return len(expired)

    def start_housekeeping(self, interval=HOUSEKEEPING_INTERVAL_SEC):
        if self._housekeeping_started:
            return
        self._housekeeping_started = True

        def _loop():
            while True:
                time.sleep(interval)
                try:
                    self.sweep_expired()
                except Exception as e:
                    logger.error("Verify queue housekeeping failed: %s", e)

        threading.Thread(target=_loop, name="verify-housekeeping", daemon=True).start()

    def on_job_complete(self, callback):
        with self._listeners_lock:
            self._listeners.append(callback)

        def _unsubscribe():
            with self._listeners_lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return _unsubscribe

    # --- Processing ---

    def _set_status(self, job, status):
        """Caller holds ``self._lock``."""
        old = job["status"]
        if not job_transition_allowed(old, status):
            if self._record_invalid_transition:
                self._record_invalid_transition(job["id"], old, status)
            return False
        job["status"] = status
        if self._record_transition:
            try:
                self._record_transition(job["id"], old, status, dict(job))
            except Exception as e:
                logger.warning("Recording transition for %s failed: %s", job["id"], e)
        return True

    def _next_queued(self):
        queued = [j for j in self._jobs.values() if j["status"] == "queued"]
        if not queued:
            return None
        return min(queued, key=lambda j: (-j["priority"], self._order[j["id"]]))

    def _process_loop(self):
        while True:
            job = None
            with self._lock:
                if self._running < self.max_concurrent:
                    job = self._next_queued()
                if job is None and self._running == 0 and self._next_queued() is None:
                    self._processing = False
                    return
                if job is not None:
                    job["started_at"] = time.time()
                    self._set_status(job, "running")
                    self._running += 1
            if job is None:
                self._wake.wait(self.poll_interval)
                self._wake.clear()
                continue
            threading.Thread(target=self._run_job, args=(job,), daemon=True).start()

    def _run_job(self, job):
        result = None
        error = None
        try:
            if job["type"] == "file":
                result = self._verify_file(job["path"], job["options"])
            else:
                result = self._verify_folder(job["path"])
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.warning("Verification job %s failed: %s", job["id"], error)

        with self._lock:
            job["completed_at"] = time.time()
            if error is None:
                job["result"] = result
                self._set_status(job, "completed")
            else:
                job["error"] = error
                self._set_status(job, "failed")
            self._running -= 1
            snapshot = dict(job)
        self._wake.set()

        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning("Verify job listener failed for %s: %s", job["id"], e)
