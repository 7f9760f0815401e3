from __future__ import annotations

import os

from flask import Blueprint, jsonify, request

from library_db import scanned_to_library_item
from scanner.file_parser import is_media_file, parse_filename
from scanner.library_scanner import FOLDER_TYPES, should_skip_directory


def _preview_directory(path, kind=None):
    """Parse every media file below ``path`` without touching the library."""
    wanted = FOLDER_TYPES.get(kind) if kind else None
    files = []
    for dirpath, dirnames, filenames in os.walk(path):
        dirnames[:] = sorted(d for d in dirnames if not should_skip_directory(d))
        for filename in sorted(filenames):
            if not is_media_file(filename):
                continue
            parsed = parse_filename(filename)
            if wanted and parsed["type"] != wanted:
                continue
            full_path = os.path.join(dirpath, filename)
            try:
                size = os.path.getsize(full_path)
            except OSError:
                continue
            files.append({"path": full_path, "filename": filename, "parsed": parsed, "size": size})
    return files


def create_blueprint(ctx):
    bp = Blueprint("scanner_routes", __name__)
    config = ctx["config"]
    scanner = ctx["scanner"]
    logger = ctx["logger"]

    @bp.route("/api/scanner/status")
    def api_scanner_status():
        progress = scanner.get_progress()
        progress["last_result"] = ctx["scan_state"].get("last_result")
        return jsonify({"ok": True, **progress})

    @bp.route("/api/scanner/start", methods=["POST"])
    def api_scanner_start():
        if scanner.is_scanning():
            return jsonify({
                "ok": False,
                "error": "Scan already in progress",
                "progress": scanner.get_progress(),
            }), 409

        data = request.get_json(silent=True) or {}
        folders = data.get("folders") or config.get_media_folders()
        folders = [f for f in folders if isinstance(f, dict)]
        if not folders:
            return jsonify({"ok": False, "error": "No folders configured for scanning"}), 400
        for folder in folders:
            if folder.get("type") not in FOLDER_TYPES:
                return jsonify({"ok": False, "error": f"Unknown folder type: {folder.get('type')}"}), 400
            if not os.path.isdir(folder.get("path") or ""):
                return jsonify({"ok": False, "error": f"Folder not accessible: {folder.get('path')}"}), 400

        def _run():
            ctx["scan_state"]["last_result"] = ctx["run_library_scan"](folders)

        ctx["start_thread"](_run)
        logger.info("Scan requested for %d folders", len(folders))
        return jsonify({"ok": True, "message": "Scan started", "progress": scanner.get_progress()})

    @bp.route("/api/scanner/stop", methods=["POST"])
    def api_scanner_stop():
        if not scanner.is_scanning():
            return jsonify({"ok": False, "error": "No scan in progress"}), 409
        scanner.abort()
        return jsonify({"ok": True, "message": "Scan abort requested"})

    @bp.route("/api/scanner/preview")
    def api_scanner_preview():
        if scanner.is_scanning():
            return jsonify({"ok": False, "error": "Scan in progress - cannot preview"}), 409
        items = []
        for scanned in scanner.get_scanned_items():
            item = scanned_to_library_item(scanned)
            item["file_size_human"] = ctx["human_size"](item["file_size"])
            items.append(item)
        return jsonify({"ok": True, "items": items, "count": len(items)})

    @bp.route("/api/scanner/preview", methods=["POST"])
    def api_scanner_preview_path():
        data = request.get_json(silent=True) or {}
        path = (data.get("path") or "").strip()
        kind = data.get("kind")
        if not path:
            return jsonify({"ok": False, "error": "path is required"}), 400
        if kind and kind not in FOLDER_TYPES:
            return jsonify({"ok": False, "error": f"Unknown kind: {kind}"}), 400
        if not os.path.isdir(path):
            return jsonify({"ok": False, "error": f"Path not accessible: {path}"}), 400
        try:
            files = _preview_directory(path, kind)
        except OSError as e:
            logger.error("Scanner preview failed for %s: %s", path, e)
            return jsonify({"ok": False, "error": str(e)}), 500
        return jsonify({"ok": True, "files": files, "count": len(files)})

    return bp
