from __future__ import annotations

import os

from flask import Blueprint, jsonify, request

from scanner.file_organizer import CONFLICT_RESOLUTIONS, OPERATIONS
from scanner.naming import preview_organized_path

SAMPLE_TYPES = ("series", "movie", "music", "book")


def _request_overrides(data):
    """Organizer option overrides accepted from a request body."""
    overrides = {}
    for key in ("destinations", "operation", "conflict_resolution", "dry_run", "cleanup_empty_folders"):
        if key in data:
            overrides[key] = data[key]
    if isinstance(data.get("naming_config"), dict):
        overrides["naming_config"] = data["naming_config"]
    return overrides


def _validate_options(options):
    if options["operation"] not in OPERATIONS:
        return f"Unknown operation: {options['operation']}"
    if options["conflict_resolution"] not in CONFLICT_RESOLUTIONS:
        return f"Unknown conflict resolution: {options['conflict_resolution']}"
    return None


def _merge_naming(base, override):
    """Overlay request templates on ``base``; only known keys with non-empty strings count."""
    merged = {section: dict(formats) for section, formats in base.items()}
    if not isinstance(override, dict):
        return merged
    for section, formats in override.items():
        if section in merged and isinstance(formats, dict):
            merged[section].update({
                k: v for k, v in formats.items()
                if k in merged[section] and isinstance(v, str) and v.strip()
            })
    return merged


def create_blueprint(ctx):
    bp = Blueprint("organizer_routes", __name__)
    config = ctx["config"]
    scanner = ctx["scanner"]
    organizer = ctx["organizer"]
    logger = ctx["logger"]

    def _options(data, **forced):
        overrides = _request_overrides(data)
        naming = overrides.pop("naming_config", None)
        options = config.get_organize_options(overrides)
        if naming:
            options["naming_config"] = _merge_naming(options["naming_config"], naming)
        options.update(forced)
        return options

    @bp.route("/api/organizer/status")
    def api_organizer_status():
        progress = organizer.get_progress()
        progress["last_summary"] = ctx["organize_state"].get("last_summary")
        return jsonify({"ok": True, **progress})

    @bp.route("/api/organizer/preview", methods=["POST"])
    def api_organizer_preview():
        if organizer.is_organizing():
            return jsonify({"ok": False, "error": "Organization in progress"}), 409
        items = scanner.get_scanned_items()
        if not items:
            return jsonify({"ok": False, "error": "No scanned items to organize. Run a scan first."}), 400
        options = _options(request.get_json(silent=True) or {}, dry_run=True)
        error = _validate_options(options)
        if error:
            return jsonify({"ok": False, "error": error}), 400
        preview = organizer.preview_organization(items, options)
        return jsonify({
            "ok": True,
            "total_items": len(preview),
            "items": [{
                "source": p["source_path"],
                "destination": p["destination_path"],
                "operation": p["operation"],
                "status": p["status"],
                "error": p.get("error"),
            } for p in preview],
        })

    @bp.route("/api/organizer/start", methods=["POST"])
    def api_organizer_start():
        if scanner.is_scanning():
            return jsonify({"ok": False, "error": "Scan in progress. Wait for scan to complete."}), 409
        if organizer.is_organizing():
            return jsonify({"ok": False, "error": "Organization already in progress"}), 409
        items = scanner.get_scanned_items()
        if not items:
            return jsonify({"ok": False, "error": "No scanned items to organize. Run a scan first."}), 400

        options = _options(request.get_json(silent=True) or {})
        error = _validate_options(options)
        if error:
            return jsonify({"ok": False, "error": error}), 400
        for kind, path in options["destinations"].items():
            if path and not os.path.isdir(path):
                return jsonify({
                    "ok": False,
                    "error": f"Destination folder not accessible for {kind}: {path}",
                }), 400

        def _run():
            ctx["organize_state"]["last_summary"] = ctx["run_organize"](items, options)

        ctx["start_thread"](_run)
        return jsonify({
            "ok": True,
            "message": "Dry run started" if options["dry_run"] else "Organization started",
            "progress": organizer.get_progress(),
        })

    @bp.route("/api/organizer/stop", methods=["POST"])
    def api_organizer_stop():
        if not organizer.is_organizing():
            return jsonify({"ok": False, "error": "No organization in progress"}), 409
        organizer.abort()
        return jsonify({"ok": True, "message": "Organization abort requested"})

    @bp.route("/api/organizer/test-naming", methods=["POST"])
    def api_organizer_test_naming():
        data = request.get_json(silent=True) or {}
        media_type = data.get("type")
        sample = data.get("sample_data") or {}
        if media_type not in SAMPLE_TYPES:
            return jsonify({"ok": False, "error": f"type must be one of {', '.join(SAMPLE_TYPES)}"}), 400
        if not sample.get("title"):
            return jsonify({"ok": False, "error": "sample_data.title is required"}), 400
        extension = sample.get("extension") or ".mkv"
        parsed = dict(sample, type=media_type, extension=extension, original_filename=f"sample{extension}")
        naming = _merge_naming(config.get_naming_config(), data.get("naming_config"))
        try:
            result = preview_organized_path(parsed, data.get("destination_root") or "/media", naming)
        except (TypeError, ValueError) as e:
            logger.error("Naming test failed: %s", e)
            return jsonify({"ok": False, "error": str(e)}), 400
        return jsonify({"ok": True, **result})

    return bp
