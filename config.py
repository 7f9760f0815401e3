import copy
import json
import os
import threading

# =============================================================================
# Curatarr Configuration
# Priority: environment variables > settings.json > defaults
# =============================================================================

SETTINGS_FILE = os.getenv("CURATARR_SETTINGS_FILE", "/data/curatarr/settings.json")

_lock = threading.Lock()
_file_settings = {}

VALID_OPERATIONS = ("move", "copy", "hardlink")
VALID_CONFLICT_RESOLUTIONS = ("skip", "overwrite", "rename")
MEDIA_FOLDER_TYPES = ("movies", "series", "music", "books")


def _load_file_settings():
    global _file_settings
    try:
        with open(SETTINGS_FILE, "r") as f:
            _file_settings = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        _file_settings = {}


def save_settings(new_settings):
    global _file_settings
    with _lock:
        _load_file_settings()
        _file_settings.update(new_settings)
        os.makedirs(os.path.dirname(SETTINGS_FILE), exist_ok=True)
        with open(SETTINGS_FILE, "w") as f:
            json.dump(_file_settings, f, indent=2)
        # Reload module-level vars
        _apply_settings()


def _get(env_key, json_key, default=""):
    """Get a config value: env var wins, then settings.json, then default."""
    env_val = os.getenv(env_key, "")
    if env_val:
        return env_val
    return _file_settings.get(json_key, default)


def _truthy(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _json_value(raw, default):
    """settings.json may hold real JSON values; env vars hold JSON text."""
    if isinstance(raw, (dict, list)):
        return raw if isinstance(raw, type(default)) else default
    try:
        value = json.loads(raw or "null")
    except (TypeError, ValueError):
        return default
    return value if isinstance(value, type(default)) else default


def _apply_settings():
    """Apply settings to module-level variables."""
    global DATA_DIR, DB_PATH, VERIFY_RESULTS_FILE
    global MEDIA_FOLDERS
    global SERIES_DIR, MOVIES_DIR, MUSIC_DIR, BOOKS_DIR
    global FILE_OPERATION, CONFLICT_RESOLUTION, CLEANUP_EMPTY_FOLDERS, NAMING_CONFIG
    global FFPROBE_BIN, FFMPEG_BIN
    global VERIFY_MAX_CONCURRENT, VERIFY_POLL_INTERVAL, VERIFY_RETENTION_HOURS
    global VERIFY_ON_SCAN, VERIFY_SETTINGS

    # Storage
    DATA_DIR = _get("CURATARR_DATA_DIR", "data_dir", "/data/curatarr")
    DB_PATH = _get("CURATARR_DB_PATH", "db_path", os.path.join(DATA_DIR, "library.db"))
    VERIFY_RESULTS_FILE = _get(
        "CURATARR_VERIFY_RESULTS_FILE", "verify_results_file",
        os.path.join(DATA_DIR, "verify-results.json"),
    )

    # Library folders to scan: [{"path": "/media/tv", "type": "series"}, ...]
    MEDIA_FOLDERS = _get("MEDIA_FOLDERS", "media_folders", "[]")

    # Organizer destinations
    SERIES_DIR = _get("SERIES_DIR", "series_dir", "")
    MOVIES_DIR = _get("MOVIES_DIR", "movies_dir", "")
    MUSIC_DIR = _get("MUSIC_DIR", "music_dir", "")
    BOOKS_DIR = _get("BOOKS_DIR", "books_dir", "")

    # Organizer behaviour
    FILE_OPERATION = str(_get("FILE_OPERATION", "file_operation", "move")).lower()
    if FILE_OPERATION not in VALID_OPERATIONS:
        FILE_OPERATION = "move"
    CONFLICT_RESOLUTION = str(_get("CONFLICT_RESOLUTION", "conflict_resolution", "skip")).lower()
    if CONFLICT_RESOLUTION not in VALID_CONFLICT_RESOLUTIONS:
        CONFLICT_RESOLUTION = "skip"
    CLEANUP_EMPTY_FOLDERS = _truthy(_get("CLEANUP_EMPTY_FOLDERS", "cleanup_empty_folders", "false"))
    NAMING_CONFIG = _get("NAMING_CONFIG", "naming_config", "{}")

    # Probing
    FFPROBE_BIN = _get("FFPROBE_BIN", "ffprobe_bin", "ffprobe")
    FFMPEG_BIN = _get("FFMPEG_BIN", "ffmpeg_bin", "ffmpeg")

    # Verification queue
    VERIFY_MAX_CONCURRENT = max(1, int(_get("VERIFY_MAX_CONCURRENT", "verify_max_concurrent", 2)))
    VERIFY_POLL_INTERVAL = max(0.05, float(_get("VERIFY_POLL_INTERVAL", "verify_poll_interval", 0.5)))
    VERIFY_RETENTION_HOURS = max(1, int(_get("VERIFY_RETENTION_HOURS", "verify_retention_hours", 24)))
    VERIFY_ON_SCAN = _truthy(_get("VERIFY_ON_SCAN", "verify_on_scan", "false"))

    # Phase verification thresholds (min_duration_sec, min_bitrate_kbps_by_height, allowed_containers)
    VERIFY_SETTINGS = _get("VERIFY_SETTINGS", "verify_settings", "{}")


def get_media_folders():
    """Configured scan folders, dropping entries with a missing path or unknown type."""
    folders = _json_value(MEDIA_FOLDERS, [])
    return [
        {"path": f["path"], "type": f["type"]}
        for f in folders
        if isinstance(f, dict) and f.get("path") and f.get("type") in MEDIA_FOLDER_TYPES
    ]


def get_destinations():
    return {
        "series": SERIES_DIR,
        "movies": MOVIES_DIR,
        "music": MUSIC_DIR,
        "books": BOOKS_DIR,
    }


def get_naming_config():
    """Default naming templates with any configured overrides merged in."""
    from scanner.naming import DEFAULT_NAMING_CONFIG

    merged = copy.deepcopy(DEFAULT_NAMING_CONFIG)
    overrides = _json_value(NAMING_CONFIG, {})
    for section, formats in overrides.items():
        if section in merged and isinstance(formats, dict):
            merged[section].update({
                k: v for k, v in formats.items()
                if k in merged[section] and isinstance(v, str) and v.strip()
            })
    return merged


def get_organize_options(overrides=None):
    """Organizer options from settings, with per-request overrides on top."""
    options = {
        "destinations": get_destinations(),
        "operation": FILE_OPERATION,
        "conflict_resolution": CONFLICT_RESOLUTION,
        "naming_config": get_naming_config(),
        "dry_run": False,
        "cleanup_empty_folders": CLEANUP_EMPTY_FOLDERS,
    }
    overrides = dict(overrides or {})
    if isinstance(overrides.get("destinations"), dict):
        destinations = dict(options["destinations"])
        destinations.update({k: v for k, v in overrides.pop("destinations").items() if v})
        options["destinations"] = destinations
    for key, value in overrides.items():
        if key in options and value is not None:
            options[key] = value
    return options


def get_verify_settings():
    return _json_value(VERIFY_SETTINGS, {})


def get_all_settings():
    """Return current effective settings (for the settings UI)."""
    return {
        "data_dir": DATA_DIR,
        "db_path": DB_PATH,
        "verify_results_file": VERIFY_RESULTS_FILE,
        "media_folders": get_media_folders(),
        "series_dir": SERIES_DIR,
        "movies_dir": MOVIES_DIR,
        "music_dir": MUSIC_DIR,
        "books_dir": BOOKS_DIR,
        "file_operation": FILE_OPERATION,
        "conflict_resolution": CONFLICT_RESOLUTION,
        "cleanup_empty_folders": CLEANUP_EMPTY_FOLDERS,
        "naming_config": get_naming_config(),
        "ffprobe_bin": FFPROBE_BIN,
        "ffmpeg_bin": FFMPEG_BIN,
        "verify_max_concurrent": VERIFY_MAX_CONCURRENT,
        "verify_poll_interval": VERIFY_POLL_INTERVAL,
        "verify_retention_hours": VERIFY_RETENTION_HOURS,
        "verify_on_scan": VERIFY_ON_SCAN,
        "verify_settings": get_verify_settings(),
    }


def get_file_settings():
    """Return raw settings.json values (not environment overrides)."""
    with _lock:
        _load_file_settings()
        return dict(_file_settings)


# Initialize on import
_load_file_settings()
_apply_settings()
