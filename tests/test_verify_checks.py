import probe
import verify_checks


def _no_metadata(_path, _title):
    return {}


def test_sample_title_is_wrong_content():
    result = verify_checks.run_verify(
        {"phase": "arr", "kind": "movie", "id": 3, "title": "Heat.1995.Sample.mkv"},
        probe_file=_no_metadata,
    )
    assert result["phase"] == "arr"
    assert [i["kind"] for i in result["issues"]] == ["wrong_content"]
    assert result["top_severity"] == "error"


def test_camrip_is_low_quality():
    result = verify_checks.run_verify({"title": "Heat CAMRip"}, probe_file=_no_metadata)
    assert result["phase"] == "all"
    assert result["top_severity"] == "warn"


def test_clean_title_without_metadata():
    result = verify_checks.run_verify({"title": "Heat"}, probe_file=_no_metadata)
    assert result["issues"] == []
    assert result["top_severity"] == "none"


def test_title_heuristics_drive_the_fallback_probe(monkeypatch):
    monkeypatch.setattr(probe, "ffprobe_available", lambda *_a: False)
    result = verify_checks.run_verify({"phase": "player", "title": "Heat 1080p", "path": "/x.mkv"})
    kinds = [i["kind"] for i in result["issues"]]
    # 45s stub duration and 1800kbps at 1080p fall under the defaults.
    assert kinds == ["short_duration", "encoding_low_bitrate"]
    assert result["top_severity"] == "warn"


def test_probe_receives_path_and_title():
    seen = []

    def _probe(path, title):
        seen.append((path, title))
        return {}

    verify_checks.run_verify({"title": "Heat", "path": "/m/heat.mkv"}, probe_file=_probe)
    assert seen == [("/m/heat.mkv", "Heat")]


def test_container_families():
    thresholds = verify_checks.thresholds_from_settings(None)
    assert verify_checks.assess_metadata({"container": "matroska,webm"}, thresholds) == []
    assert verify_checks.assess_metadata({"container": "mov,mp4,m4a,3gp,3g2,mj2"}, thresholds) == []
    issues = verify_checks.assess_metadata({"container": "avi"}, thresholds)
    assert [i["kind"] for i in issues] == ["container_unsupported"]


def test_settings_override_thresholds():
    thresholds = verify_checks.thresholds_from_settings({
        "min_duration_sec": 10,
        "min_bitrate_kbps_by_height": {1080: 1000},
        "allowed_containers": ["avi"],
    })
    md = {"container": "avi", "duration_sec": 45, "video": {"height": 1080, "bitrate_kbps": 1800}}
    assert verify_checks.assess_metadata(md, thresholds) == []
    assert verify_checks.DEFAULT_THRESHOLDS["min_duration_sec"] == 60


def test_unknown_height_has_no_bitrate_floor():
    thresholds = verify_checks.thresholds_from_settings({})
    md = {"duration_sec": 6000, "video": {"height": 480, "bitrate_kbps": 100}}
    assert verify_checks.assess_metadata(md, thresholds) == []


def test_top_severity():
    assert verify_checks.top_severity([]) == "none"
    assert verify_checks.top_severity([{"severity": "info"}, {"severity": "warn"}]) == "warn"
    assert verify_checks.top_severity([{"severity": "error"}, {"severity": "warn"}]) == "error"
