from __future__ import annotations

import sqlite3

from flask import Blueprint, Response, jsonify, request

VERSION = "1.0.0"


def create_blueprint(ctx):
    bp = Blueprint("system_routes", __name__)

    @bp.route("/api/health")
    def api_health():
        return jsonify({"status": "ok", "version": VERSION})

    @bp.route("/readyz")
    def readyz():
        deep = request.args.get("deep", "0").lower() in ("1", "true", "yes")
        strict = request.args.get("strict", "0").lower() in ("1", "true", "yes")

        db_ok = True
        db_error = None
        try:
            with sqlite3.connect(ctx["db_path"], timeout=5) as conn:
                conn.execute("SELECT 1")
        except sqlite3.Error as e:
            db_ok = False
            db_error = str(e)

        runtime_diag = ctx["runtime_config_validation"]()

        local_failures = []
        if not db_ok:
            local_failures.append({"component": "database", "error": db_error})
        for path_check in runtime_diag.get("paths", []) + runtime_diag.get("media_folders", []):
            if path_check.get("ok") is False:
                local_failures.append({
                    "component": "path",
                    "name": path_check.get("name"),
                    "error": path_check.get("error", "path check failed"),
                })

        # Missing tools only degrade verification; strict mode treats them as failures.
        tool_failures = []
        if deep:
            for tool in runtime_diag.get("tools", []):
                if tool.get("ok") is False:
                    tool_failures.append({"component": tool["name"], "error": tool.get("error")})

        failures = list(local_failures)
        if strict:
            failures.extend(tool_failures)

        return jsonify({
            "status": "ready" if not failures else "not_ready",
            "strict": strict,
            "deep": deep,
            "checks": {
                "database": {"ok": db_ok, "error": db_error},
                "runtime": runtime_diag,
            },
            "failures": failures,
            "warnings": [] if strict else tool_failures,
        }), (200 if not failures else 503)

    @bp.route("/api/schema")
    def api_schema_status():
        with sqlite3.connect(ctx["db_path"], timeout=10) as conn:
            migrations = ctx["get_migration_status"](conn)
        return jsonify({"migrations": migrations, "count": len(migrations)})

    @bp.route("/metrics")
    def metrics_endpoint():
        queue_status = ctx["verify_queue"].get_status()
        telemetry = ctx["telemetry"]
        library = ctx["library"]
        lines = telemetry.gauge_lines(
            "curatarr_verify_jobs_by_status", "Verification jobs by current status.",
            [({"status": s}, queue_status[f"{s}_jobs"]) for s in ("queued", "running", "completed", "failed")],
        )
        lines += telemetry.gauge_lines(
            "curatarr_library_items_total", "Tracked library items.", library.count_items(),
        )
        lines += telemetry.gauge_lines(
            "curatarr_activity_events_total", "Activity log events.", library.count_activity(),
        )
        lines += telemetry.gauge_lines(
            "curatarr_scan_in_progress", "Whether a library scan is running (1=running).",
            1 if ctx["scanner"].is_scanning() else 0,
        )
        lines += telemetry.gauge_lines(
            "curatarr_organize_in_progress", "Whether an organize run is active (1=active).",
            1 if ctx["organizer"].is_organizing() else 0,
        )
        return Response(
            telemetry.metrics.render(lines),
            mimetype="text/plain; version=0.0.4",
        )

    @bp.route("/api/config")
    def api_config():
        config = ctx["config"]
        destinations = config.get_destinations()
        return jsonify({
            "media_folders": len(config.get_media_folders()),
            "destinations": {kind: bool(path) for kind, path in destinations.items()},
            "file_operation": config.FILE_OPERATION,
            "conflict_resolution": config.CONFLICT_RESOLUTION,
            "cleanup_empty_folders": config.CLEANUP_EMPTY_FOLDERS,
            "ffprobe": ctx["ffprobe_available"](config.FFPROBE_BIN),
            "verify_on_scan": config.VERIFY_ON_SCAN,
            "verify_max_concurrent": config.VERIFY_MAX_CONCURRENT,
        })

    return bp
