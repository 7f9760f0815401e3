import pytest

import probe

FFPROBE_JSON = {
    "format": {"format_name": "matroska,webm", "duration": "7205.3", "bit_rate": "5200000"},
    "streams": [
        {
            "codec_type": "video", "codec_name": "h264", "width": 1920, "height": 1080,
            "bit_rate": "4800000", "avg_frame_rate": "24000/1001",
        },
        {"codec_type": "audio", "codec_name": "aac", "channels": 6, "tags": {"language": "eng"}},
        {"codec_type": "subtitle", "tags": {"language": "spa"}, "disposition": {"forced": 1}},
    ],
}


def test_parse_ratio():
    assert probe.parse_ratio("24000/1001") == pytest.approx(23.976, rel=1e-3)
    assert probe.parse_ratio("25") == 25.0
    assert probe.parse_ratio("0/0") is None
    assert probe.parse_ratio(None) is None


def test_summarize():
    md = probe.summarize(FFPROBE_JSON)
    assert md["container"] == "matroska,webm"
    assert md["duration_sec"] == pytest.approx(7205.3)
    assert md["bitrate_kbps"] == 5200
    assert md["video"]["height"] == 1080
    assert md["video"]["bitrate_kbps"] == 4800
    assert md["video"]["framerate"] == pytest.approx(23.976, rel=1e-3)
    assert md["audio"] == [{"codec": "aac", "channels": 6, "language": "eng"}]
    assert md["subtitles"] == [{"language": "spa", "forced": True}]


def test_summarize_audio_only():
    md = probe.summarize({"format": {"format_name": "flac"}, "streams": [{"codec_type": "audio"}]})
    assert "video" not in md
    assert md["bitrate_kbps"] is None


def test_stub_probe_reads_quality_tokens():
    assert probe.stub_probe("Movie.2160p.WEB")["video"]["height"] == 2160
    assert probe.stub_probe("Movie 720p")["video"] == {"height": 720, "bitrate_kbps": 900}
    assert probe.stub_probe("Movie")["video"]["height"] == 480
    assert "video" not in probe.stub_probe("")
    assert probe.stub_probe("x")["stub"] is True


def test_probe_file_falls_back_without_ffprobe(monkeypatch):
    monkeypatch.setattr(probe, "ffprobe_available", lambda *_a: False)
    md = probe.probe_file("/media/movie.mkv", "Movie 1080p")
    assert md["stub"] is True
    assert md["video"]["height"] == 1080


def test_probe_file_falls_back_when_probe_fails(monkeypatch):
    monkeypatch.setattr(probe, "ffprobe_available", lambda *_a: True)
    monkeypatch.setattr(probe, "run_ffprobe", lambda *_a, **_k: (None, "Invalid data"))
    assert probe.probe_file("/media/movie.mkv", "Movie 720p")["stub"] is True


def test_probe_file_uses_ffprobe_output(monkeypatch):
    monkeypatch.setattr(probe, "ffprobe_available", lambda *_a: True)
    monkeypatch.setattr(probe, "run_ffprobe", lambda *_a, **_k: (FFPROBE_JSON, None))
    md = probe.probe_file("/media/movie.mkv", "ignored")
    assert "stub" not in md
    assert md["container"] == "matroska,webm"


def test_probe_file_without_path_uses_title():
    assert probe.probe_file(None, "Show 720p")["video"]["height"] == 720


def test_run_ffprobe_missing_binary(tmp_path):
    data, err = probe.run_ffprobe(tmp_path / "x.mkv", ffprobe_bin=str(tmp_path / "no-ffprobe"))
    assert data is None
    assert err.startswith("ffprobe not found")


def test_run_decode_check_missing_binary(tmp_path):
    result = probe.run_decode_check(tmp_path / "x.mkv", ffmpeg_bin=str(tmp_path / "no-ffmpeg"))
    assert result == {"corrupted": False, "errors": []}
