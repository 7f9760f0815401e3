from types import SimpleNamespace

import diagnostics
from media_utils import human_size


def _config(tmp_path, **overrides):
    values = {
        "DATA_DIR": str(tmp_path / "data"),
        "FFPROBE_BIN": "ffprobe",
        "FFMPEG_BIN": "ffmpeg",
        "destinations": {"movies": "", "series": "", "music": "", "books": ""},
        "folders": [],
    }
    values.update(overrides)
    return SimpleNamespace(
        DATA_DIR=values["DATA_DIR"],
        FFPROBE_BIN=values["FFPROBE_BIN"],
        FFMPEG_BIN=values["FFMPEG_BIN"],
        get_destinations=lambda: values["destinations"],
        get_media_folders=lambda: values["folders"],
    )


def test_path_checks(tmp_path):
    assert diagnostics.path_check("x", "")["error"] == "not configured"
    assert diagnostics.path_check("x", str(tmp_path / "missing"))["ok"] is False
    created = diagnostics.path_check("x", str(tmp_path / "new"), create=True)
    assert created["ok"] is True
    assert (tmp_path / "new").is_dir()
    assert diagnostics.readable_check("movies", str(tmp_path))["ok"] is True
    assert diagnostics.readable_check("movies", str(tmp_path / "gone"))["error"] == "path does not exist"


def test_tool_check_uses_which():
    found = diagnostics.tool_check("ffprobe", "ffprobe", which=lambda b: "/usr/bin/" + b)
    assert found == {"name": "ffprobe", "binary": "ffprobe", "path": "/usr/bin/ffprobe", "ok": True}
    missing = diagnostics.tool_check("ffprobe", "ffprobe", which=lambda b: None)
    assert missing["ok"] is False
    assert missing["error"] == "not found on PATH"


def test_missing_tools_do_not_fail_validation(tmp_path):
    result = diagnostics.runtime_config_validation(_config(tmp_path), which=lambda b: None)
    assert result["success"] is True
    assert [t["ok"] for t in result["tools"]] == [False, False]
    assert result["paths"][0]["name"] == "data_dir"


def test_missing_media_folder_fails_validation(tmp_path):
    cfg = _config(
        tmp_path,
        destinations={"movies": str(tmp_path), "series": "", "music": "", "books": ""},
        folders=[{"path": str(tmp_path / "gone"), "type": "movies"}],
    )
    result = diagnostics.runtime_config_validation(cfg, which=lambda b: "/bin/" + b)
    assert result["success"] is False
    assert result["media_folders"][0]["ok"] is False
    movies = next(p for p in result["paths"] if p["name"] == "movies_dir")
    assert movies["ok"] is True


def test_human_size():
    assert human_size(0) == "?"
    assert human_size(512) == "512.0 B"
    assert human_size(1536) == "1.5 KB"
    assert human_size(5 * 1024 ** 3) == "5.0 GB"
