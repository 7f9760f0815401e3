from __future__ import annotations

import os

from flask import Blueprint, jsonify, request

from content_verify import DEFAULT_OPTIONS
from verify_checks import PHASES
from verify_queue import DEFAULT_PRIORITY, JOB_SOURCES, JOB_TYPES
from verify_store import result_key

RECENT_JOBS_LIMIT = 50
_SOURCE_ERROR = f"metadata.source must be one of {', '.join(JOB_SOURCES)}"


def _verify_options(raw):
    raw = raw if isinstance(raw, dict) else {}
    return {k: v for k, v in raw.items() if k in DEFAULT_OPTIONS}


def _job_metadata(raw):
    """Copy of a job's metadata with ``source`` defaulted; None when the source is unknown."""
    metadata = dict(raw) if isinstance(raw, dict) else {}
    metadata.setdefault("source", "manual")
    if metadata["source"] not in JOB_SOURCES:
        return None
    return metadata


def _priority(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY


def create_blueprint(ctx):
    bp = Blueprint("verify_routes", __name__)
    queue = ctx["verify_queue"]
    store = ctx["verify_store"]
    phase_jobs = ctx["phase_jobs"]
    logger = ctx["logger"]

    # --- Background queue ---

    @bp.route("/api/verify/queue", methods=["POST"])
    def api_queue_add():
        data = request.get_json(silent=True) or {}
        job_type = data.get("type", "file")
        path = (data.get("path") or "").strip()
        if job_type not in JOB_TYPES:
            return jsonify({"ok": False, "error": f"type must be one of {', '.join(JOB_TYPES)}"}), 400
        if not path:
            return jsonify({"ok": False, "error": "path is required"}), 400
        metadata = _job_metadata(data.get("metadata"))
        if metadata is None:
            return jsonify({"ok": False, "error": _SOURCE_ERROR}), 400
        job_id = queue.add_job(
            job_type, path, _verify_options(data.get("options")), metadata, _priority(data.get("priority")),
        )
        return jsonify({"ok": True, "job_id": job_id})

    @bp.route("/api/verify/queue/batch", methods=["POST"])
    def api_queue_batch():
        data = request.get_json(silent=True) or {}
        files = data.get("files")
        if not isinstance(files, list) or not files:
            return jsonify({"ok": False, "error": "files must be a non-empty list"}), 400
        entries = []
        for f in files:
            if isinstance(f, str):
                f = {"path": f}
            if not isinstance(f, dict) or not f.get("path"):
                return jsonify({"ok": False, "error": "every file needs a path"}), 400
            metadata = _job_metadata(f.get("metadata"))
            if metadata is None:
                return jsonify({"ok": False, "error": _SOURCE_ERROR}), 400
            entries.append({"path": f["path"], "metadata": metadata})
        job_ids = queue.add_batch(entries, _verify_options(data.get("options")), _priority(data.get("priority")))
        return jsonify({"ok": True, "job_ids": job_ids, "count": len(job_ids)})

    @bp.route("/api/verify/queue")
    def api_queue_status():
        return jsonify({
            "ok": True,
            "status": queue.get_status(),
            "jobs": queue.get_all_jobs()[:RECENT_JOBS_LIMIT],
        })

    @bp.route("/api/verify/queue/<job_id>")
    def api_queue_job(job_id):
        job = queue.get_job(job_id)
        if not job:
            return jsonify({"ok": False, "error": "Job not found"}), 404
        return jsonify({"ok": True, "job": job})

    @bp.route("/api/verify/queue/<job_id>", methods=["DELETE"])
    def api_queue_cancel(job_id):
        if not queue.cancel_job(job_id):
            return jsonify({"ok": False, "error": "Job not found or already started"}), 409
        return jsonify({"ok": True})

    @bp.route("/api/verify/queue/clear", methods=["POST"])
    def api_queue_clear():
        return jsonify({"ok": True, "cleared": queue.clear_completed()})

    @bp.route("/api/verify/queue/results")
    def api_queue_results():
        results = queue.get_results()
        return jsonify({
            "ok": True,
            "results": results,
            "count": len(results),
            "passed": sum(1 for r in results if r["passed"]),
        })

    # --- Direct content verification ---

    @bp.route("/api/verify/content", methods=["POST"])
    def api_verify_content():
        data = request.get_json(silent=True) or {}
        path = (data.get("path") or "").strip()
        if not path:
            return jsonify({"ok": False, "error": "path is required"}), 400
        try:
            return jsonify(ctx["verify_content"](os.path.abspath(path), _verify_options(data)))
        except Exception as e:
            logger.error("Content verification failed for %s: %s", path, e)
            return jsonify({"ok": False, "error": str(e)}), 500

    @bp.route("/api/verify/content/quick", methods=["POST"])
    def api_verify_content_quick():
        data = request.get_json(silent=True) or {}
        path = (data.get("path") or "").strip()
        if not path:
            return jsonify({"ok": False, "error": "path is required"}), 400
        return jsonify(ctx["quick_verify"](os.path.abspath(path)))

    @bp.route("/api/verify/security", methods=["POST"])
    def api_verify_security():
        data = request.get_json(silent=True) or {}
        path = (data.get("path") or "").strip()
        if not path:
            return jsonify({"ok": False, "error": "path is required"}), 400
        if os.path.isdir(path):
            return jsonify(ctx["security_scan"].scan_directory(path, bool(data.get("recursive", True))))
        if not os.path.exists(path):
            return jsonify({"ok": False, "error": f"Path not accessible: {path}"}), 404
        return jsonify(ctx["security_scan"].scan_file(path))

    # --- Phase verification of library items ---

    def _phase_input(data):
        kind = str(data.get("kind") or "")
        item_id = str(data.get("id") or "")
        phase = str(data.get("phase") or "all")
        if not kind or not item_id:
            return None, "missing_params"
        if phase not in PHASES:
            return None, f"phase must be one of {', '.join(PHASES)}"
        return {"phase": phase, "kind": kind, "id": item_id, "title": str(data.get("title") or "")}, None

    @bp.route("/api/verify/check", methods=["POST"])
    def api_verify_check():
        data = request.get_json(silent=True) or {}
        verify_input, error = _phase_input(data)
        if error:
            return jsonify({"ok": False, "error": error}), 400
        if data.get("path"):
            verify_input["path"] = data["path"]
        result = ctx["run_verify"](dict(verify_input, settings=ctx["config"].get_verify_settings()))
        logger.info(
            "Verify %s:%s (%s): %d issues, top severity %s",
            verify_input["kind"], verify_input["id"], verify_input["phase"],
            len(result["issues"]), result["top_severity"],
        )
        return jsonify({"ok": True, "result": result})

    @bp.route("/api/verify/jobs", methods=["POST"])
    def api_verify_jobs_create():
        data = request.get_json(silent=True) or {}
        verify_input, error = _phase_input(data)
        if error:
            return jsonify({"ok": False, "error": error}), 400
        job_id = phase_jobs.submit(
            verify_input["phase"], verify_input["kind"], verify_input["id"],
            verify_input["title"], data.get("path"),
        )
        return jsonify({"ok": True, "job_id": job_id})

    @bp.route("/api/verify/jobs/<job_id>")
    def api_verify_jobs_get(job_id):
        job = phase_jobs.get(job_id)
        if not job:
            return jsonify({"ok": False, "error": "not_found"}), 404
        return jsonify({"ok": True, "job": job})

    @bp.route("/api/verify/results/<kind>/<item_id>")
    def api_verify_result(kind, item_id):
        result = store.get(result_key(kind, item_id))
        if result is None:
            return jsonify({"ok": False, "error": "not_found"}), 404
        return jsonify({"ok": True, "result": result})

    return bp
