from __future__ import annotations

from flask import Blueprint, jsonify, request

from scanner.file_organizer import CONFLICT_RESOLUTIONS, OPERATIONS
from scanner.naming import DEFAULT_NAMING_CONFIG

MEDIA_FOLDER_TYPES = ("movies", "series", "music", "books")


def _validate_settings(data):
    if "file_operation" in data and data["file_operation"] not in OPERATIONS:
        return f"file_operation must be one of {', '.join(OPERATIONS)}"
    if "conflict_resolution" in data and data["conflict_resolution"] not in CONFLICT_RESOLUTIONS:
        return f"conflict_resolution must be one of {', '.join(CONFLICT_RESOLUTIONS)}"
    if "media_folders" in data:
        folders = data["media_folders"]
        if not isinstance(folders, list):
            return "media_folders must be a list"
        for folder in folders:
            if not isinstance(folder, dict) or not folder.get("path"):
                return "every media folder needs a path"
            if folder.get("type") not in MEDIA_FOLDER_TYPES:
                return f"media folder type must be one of {', '.join(MEDIA_FOLDER_TYPES)}"
    for key in ("verify_max_concurrent", "verify_retention_hours"):
        if key in data:
            try:
                if int(data[key]) < 1:
                    raise ValueError
            except (TypeError, ValueError):
                return f"{key} must be a positive integer"
    return None


def _validate_naming(naming):
    if not isinstance(naming, dict):
        return "naming_config must be an object"
    for section, formats in naming.items():
        if section not in DEFAULT_NAMING_CONFIG:
            return f"Unknown naming section: {section}"
        if not isinstance(formats, dict):
            return f"naming_config.{section} must be an object"
        for key, value in formats.items():
            if key not in DEFAULT_NAMING_CONFIG[section]:
                return f"Unknown naming format: {section}.{key}"
            if not isinstance(value, str) or not value.strip():
                return f"naming_config.{section}.{key} must be a non-empty string"
    return None


def create_blueprint(ctx):
    bp = Blueprint("settings_routes", __name__)
    config = ctx["config"]
    logger = ctx["logger"]

    @bp.route("/api/settings")
    def api_get_settings():
        return jsonify(config.get_all_settings())

    @bp.route("/api/settings", methods=["POST"])
    def api_save_settings():
        data = request.get_json(silent=True)
        if not data or not isinstance(data, dict):
            return jsonify({"success": False, "error": "No data provided"}), 400
        error = _validate_settings(data)
        if not error and "naming_config" in data:
            error = _validate_naming(data["naming_config"])
        if error:
            return jsonify({"success": False, "error": error}), 400
        try:
            config.save_settings(dict(data))
            ctx["on_settings_saved"]()
            return jsonify({"success": True})
        except OSError as e:
            logger.error("Failed to save settings: %s", e)
            return jsonify({"success": False, "error": str(e)}), 500

    @bp.route("/api/settings/naming")
    def api_get_naming():
        return jsonify({
            "ok": True,
            "naming_config": config.get_naming_config(),
            "default_naming_config": DEFAULT_NAMING_CONFIG,
        })

    @bp.route("/api/settings/naming", methods=["POST"])
    def api_save_naming():
        data = request.get_json(silent=True) or {}
        naming = data.get("naming_config", data)
        error = _validate_naming(naming)
        if error:
            return jsonify({"ok": False, "error": error}), 400
        current = config.get_naming_config()
        for section, formats in naming.items():
            current[section].update(formats)
        try:
            config.save_settings({"naming_config": current})
        except OSError as e:
            logger.error("Failed to save naming settings: %s", e)
            return jsonify({"ok": False, "error": str(e)}), 500
        return jsonify({"ok": True, "naming_config": config.get_naming_config()})

    @bp.route("/api/validate/config")
    def api_validate_config():
        return jsonify(ctx["runtime_config_validation"]())

    return bp
