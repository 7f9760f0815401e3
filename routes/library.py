from __future__ import annotations

from flask import Blueprint, jsonify, request

LIBRARY_KINDS = ("movie", "series", "music", "book")
PER_PAGE = 24
VERIFY_PRIORITY = 5


def _priority(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return VERIFY_PRIORITY


def create_blueprint(ctx):
    bp = Blueprint("library_routes", __name__)
    library = ctx["library"]
    logger = ctx["logger"]

    @bp.route("/api/library")
    def api_library():
        kind = request.args.get("kind") or None
        if kind and kind not in LIBRARY_KINDS:
            return jsonify({"ok": False, "error": f"Unknown kind: {kind}"}), 400
        page = max(1, request.args.get("page", 1, type=int))
        per_page = min(200, max(1, request.args.get("per_page", PER_PAGE, type=int)))
        items = library.get_items(kind=kind, limit=per_page, offset=(page - 1) * per_page)
        for item in items:
            item["file_size_human"] = ctx["human_size"](item.get("file_size"))
        total = library.count_items(kind=kind)
        return jsonify({
            "ok": True,
            "items": items,
            "total": total,
            "page": page,
            "pages": max(1, (total + per_page - 1) // per_page),
        })

    @bp.route("/api/library/<int:item_id>")
    def api_library_item(item_id):
        item = library.get_item(item_id)
        if not item:
            return jsonify({"ok": False, "error": "Item not found"}), 404
        return jsonify({"ok": True, "item": item})

    @bp.route("/api/library/<int:item_id>", methods=["DELETE"])
    def api_library_delete(item_id):
        item = library.get_item(item_id)
        if not item or not library.delete_item(item_id):
            return jsonify({"ok": False, "error": "Item not found"}), 404
        library.log_event("item_removed", title=item["title"], library_item_id=item_id)
        logger.info("Removed library item %s (%s)", item_id, item["title"])
        return jsonify({"ok": True})

    @bp.route("/api/library/<int:item_id>/verify", methods=["POST"])
    def api_library_verify(item_id):
        item = library.get_item(item_id)
        if not item:
            return jsonify({"ok": False, "error": "Item not found"}), 404
        if not item.get("file_path"):
            return jsonify({"ok": False, "error": "Item has no file"}), 400
        data = request.get_json(silent=True) or {}
        job_id = ctx["verify_queue"].add_job(
            "file",
            item["file_path"],
            {"expected_title": item["title"], "expected_quality": item.get("quality") or None},
            {"source": "manual", "kind": item["kind"], "item_id": item_id, "title": item["title"]},
            _priority(data.get("priority")),
        )
        library.log_event("verify_queued", title=item["title"], library_item_id=item_id, job_id=job_id)
        return jsonify({"ok": True, "job_id": job_id})

    @bp.route("/api/activity")
    def api_activity():
        limit = request.args.get("limit", 50, type=int)
        offset = request.args.get("offset", 0, type=int)
        events = library.get_activity(limit=limit, offset=offset)
        total = library.count_activity()
        return jsonify({"events": events, "total": total})

    return bp
