"""Runtime diagnostics helpers."""
from __future__ import annotations

import os
import shutil


def path_check(name, path, create=False):
    check = {"name": name, "path": path or "", "exists": False, "writable": False, "ok": False}
    if not path:
        check["error"] = "not configured"
        return check
    if os.path.exists(path):
        check["exists"] = True
        check["writable"] = os.access(path, os.W_OK)
        check["ok"] = check["writable"]
        if not check["ok"]:
            check["error"] = "path not writable"
        return check
    if create:
        try:
            os.makedirs(path, exist_ok=True)
            check["exists"] = True
            check["writable"] = os.access(path, os.W_OK)
            check["ok"] = check["writable"]
            if not check["ok"]:
                check["error"] = "created but not writable"
            return check
        except OSError as e:
            check["error"] = str(e)
            return check
    check["error"] = "path does not exist"
    return check


def readable_check(name, path):
    """Scan folders only need to be readable."""
    check = {"name": name, "path": path or "", "exists": False, "readable": False, "ok": False}
    if not path:
        check["error"] = "not configured"
        return check
    check["exists"] = os.path.isdir(path)
    check["readable"] = check["exists"] and os.access(path, os.R_OK | os.X_OK)
    check["ok"] = check["readable"]
    if not check["exists"]:
        check["error"] = "path does not exist"
    elif not check["readable"]:
        check["error"] = "path not readable"
    return check


def tool_check(name, binary, which=shutil.which):
    resolved = which(binary) if binary else None
    check = {"name": name, "binary": binary or "", "path": resolved or "", "ok": bool(resolved)}
    if not resolved:
        check["error"] = "not found on PATH"
    return check


def runtime_config_validation(config_module, *, which=shutil.which):
    """Validate configured folders and external tools.

    Missing ffprobe/ffmpeg only degrade verification (stub probing, no decode
    check), so they are reported but never fail the overall result.
    """
    checks = {"paths": [], "media_folders": [], "tools": []}
    checks["paths"].append(path_check("data_dir", config_module.DATA_DIR, create=True))
    for kind, path in config_module.get_destinations().items():
        if path:
            checks["paths"].append(path_check(f"{kind}_dir", path))
        else:
            checks["paths"].append({"name": f"{kind}_dir", "ok": True, "info": "not configured"})

    for folder in config_module.get_media_folders():
        checks["media_folders"].append(readable_check(folder["type"], folder["path"]))

    checks["tools"].append(tool_check("ffprobe", config_module.FFPROBE_BIN, which=which))
    checks["tools"].append(tool_check("ffmpeg", config_module.FFMPEG_BIN, which=which))

    path_errors = [p for p in checks["paths"] + checks["media_folders"] if p.get("ok") is False]
    checks["success"] = not path_errors
    return checks
