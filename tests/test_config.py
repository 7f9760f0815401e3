import importlib
import json

import pytest

import config

_ENV_KEYS = (
    "CURATARR_DB_PATH", "CURATARR_VERIFY_RESULTS_FILE",
    "MEDIA_FOLDERS", "MOVIES_DIR", "SERIES_DIR", "FILE_OPERATION", "CONFLICT_RESOLUTION",
    "NAMING_CONFIG", "VERIFY_MAX_CONCURRENT", "VERIFY_ON_SCAN", "VERIFY_SETTINGS",
)


@pytest.fixture
def fresh_config(tmp_path, monkeypatch):
    settings_file = tmp_path / "settings.json"
    monkeypatch.setenv("CURATARR_SETTINGS_FILE", str(settings_file))
    monkeypatch.setenv("CURATARR_DATA_DIR", str(tmp_path / "data"))
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    def _load(settings=None):
        if settings is not None:
            settings_file.write_text(json.dumps(settings))
        return importlib.reload(config)

    yield _load
    monkeypatch.undo()
    importlib.reload(config)


def test_defaults(fresh_config, tmp_path):
    cfg = fresh_config()
    assert cfg.DATA_DIR == str(tmp_path / "data")
    assert cfg.DB_PATH == str(tmp_path / "data" / "library.db")
    assert cfg.FILE_OPERATION == "move"
    assert cfg.CONFLICT_RESOLUTION == "skip"
    assert cfg.VERIFY_MAX_CONCURRENT == 2
    assert cfg.VERIFY_ON_SCAN is False
    assert cfg.get_media_folders() == []


def test_settings_file_values(fresh_config):
    cfg = fresh_config({
        "media_folders": [
            {"path": "/media/movies", "type": "movies"},
            {"path": "/media/pods", "type": "podcasts"},
            {"type": "series"},
        ],
        "movies_dir": "/library/movies",
        "file_operation": "HARDLINK",
        "conflict_resolution": "explode",
        "verify_on_scan": True,
        "verify_settings": {"min_duration_sec": 120},
    })
    assert cfg.get_media_folders() == [{"path": "/media/movies", "type": "movies"}]
    assert cfg.get_destinations()["movies"] == "/library/movies"
    assert cfg.FILE_OPERATION == "hardlink"
    assert cfg.CONFLICT_RESOLUTION == "skip"
    assert cfg.VERIFY_ON_SCAN is True
    assert cfg.get_verify_settings() == {"min_duration_sec": 120}


def test_env_overrides_settings_file(fresh_config, monkeypatch):
    monkeypatch.setenv("FILE_OPERATION", "copy")
    monkeypatch.setenv("MEDIA_FOLDERS", '[{"path": "/tv", "type": "series"}]')
    cfg = fresh_config({"file_operation": "hardlink"})
    assert cfg.FILE_OPERATION == "copy"
    assert cfg.get_media_folders() == [{"path": "/tv", "type": "series"}]


def test_malformed_json_settings_fall_back(fresh_config, monkeypatch):
    monkeypatch.setenv("MEDIA_FOLDERS", "not json")
    monkeypatch.setenv("VERIFY_SETTINGS", "[1, 2]")
    cfg = fresh_config()
    assert cfg.get_media_folders() == []
    assert cfg.get_verify_settings() == {}


def test_naming_config_overrides(fresh_config):
    cfg = fresh_config({"naming_config": {
        "movies": {"file_format": "{Movie.CleanTitle}{Extension}", "unknown_key": "x"},
        "series": {"folder_format": "   "},
        "podcasts": {"file_format": "{Title}"},
    }})
    naming = cfg.get_naming_config()
    assert naming["movies"]["file_format"] == "{Movie.CleanTitle}{Extension}"
    assert "unknown_key" not in naming["movies"]
    assert naming["series"]["folder_format"] == "{Series.CleanTitle}"
    assert "podcasts" not in naming

    from scanner.naming import DEFAULT_NAMING_CONFIG
    assert DEFAULT_NAMING_CONFIG["movies"]["file_format"] != "{Movie.CleanTitle}{Extension}"


def test_organize_options_overrides(fresh_config):
    cfg = fresh_config({"movies_dir": "/library/movies", "series_dir": "/library/tv"})
    options = cfg.get_organize_options({
        "destinations": {"movies": "/elsewhere", "series": ""},
        "dry_run": True,
        "bogus": 1,
    })
    assert options["destinations"]["movies"] == "/elsewhere"
    assert options["destinations"]["series"] == "/library/tv"
    assert options["dry_run"] is True
    assert "bogus" not in options


def test_save_settings_persists_and_applies(fresh_config, tmp_path):
    cfg = fresh_config()
    cfg.save_settings({"verify_max_concurrent": 4, "cleanup_empty_folders": True})
    assert cfg.VERIFY_MAX_CONCURRENT == 4
    assert cfg.CLEANUP_EMPTY_FOLDERS is True
    assert cfg.get_file_settings() == {"verify_max_concurrent": 4, "cleanup_empty_folders": True}
    assert json.loads((tmp_path / "settings.json").read_text())["verify_max_concurrent"] == 4
