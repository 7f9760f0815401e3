from __future__ import annotations

import os


def human_size(size_bytes):
    if not size_bytes:
        return "?"
    for unit in ("B", "KB", "MB", "GB"):
        if abs(size_bytes) < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


def validate_config_paths(config, logger):
    paths_to_check = []
    if config.DATA_DIR:
        paths_to_check.append(("CURATARR_DATA_DIR", config.DATA_DIR))
    for kind, path in sorted(config.get_destinations().items()):
        if path:
            paths_to_check.append((f"{kind.upper()}_DIR", path))
    for name, path in paths_to_check:
        if not os.path.exists(path):
            logger.warning("Config path %s=%r does not exist, creating it", name, path)
            try:
                os.makedirs(path, exist_ok=True)
            except OSError as e:
                logger.error("Cannot create %s=%r: %s", name, path, e)
    for folder in config.get_media_folders():
        if not os.path.isdir(folder["path"]):
            logger.warning("Media folder %r (%s) does not exist", folder["path"], folder["type"])
