import errno
import os

import pytest

import scanner.file_organizer as file_organizer
from scanner.file_organizer import FileOrganizer, EXDEV_NOTE, get_unique_filename
from scanner.file_parser import parse_filename
from scanner.naming import DEFAULT_NAMING_CONFIG


def _scanned(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_bytes(b"video")
    return {"file_path": str(path), "parsed": parse_filename(path.name), "file_size": 5, "modified_at": ""}


@pytest.fixture
def dirs(tmp_path):
    src = tmp_path / "downloads"
    movies = tmp_path / "library" / "movies"
    series = tmp_path / "library" / "series"
    movies.mkdir(parents=True)
    series.mkdir(parents=True)
    return {"src": src, "movies": movies, "series": series}


def _options(dirs, **extra):
    options = {"destinations": {"movies": str(dirs["movies"]), "series": str(dirs["series"])}}
    options.update(extra)
    return options


def test_move_movie_into_templated_folder(dirs):
    item = _scanned(dirs["src"] / "The.Matrix.1999.1080p.BluRay.x264.mkv")
    summary = FileOrganizer().organize([item], _options(dirs, operation="move"))

    expected = dirs["movies"] / "The Matrix (1999)" / "The Matrix (1999) [1080p].mkv"
    assert expected.exists()
    assert not os.path.exists(item["file_path"])
    assert summary["success"] is True
    assert summary["moved"] == 1
    assert summary["total_processed"] == 1
    assert summary["results"][0]["destination_path"] == str(expected)


def test_copy_series_episode(dirs):
    item = _scanned(dirs["src"] / "Breaking.Bad.S01E01.Pilot.720p.mkv")
    summary = FileOrganizer().organize([item], _options(dirs, operation="copy"))

    expected = dirs["series"] / "Breaking Bad" / "Season 01" / "Breaking Bad - S01E01 - Pilot [720p].mkv"
    assert expected.exists()
    assert os.path.exists(item["file_path"])
    assert summary["copied"] == 1


def test_dry_run_touches_nothing(dirs):
    item = _scanned(dirs["src"] / "The.Matrix.1999.1080p.mkv")
    organizer = FileOrganizer()
    summary = organizer.organize([item], _options(dirs, dry_run=True))

    assert summary["results"][0]["status"] == "dry-run"
    assert list(dirs["movies"].iterdir()) == []
    assert os.path.exists(item["file_path"])


def test_preview_organization_is_always_dry(dirs):
    item = _scanned(dirs["src"] / "The.Matrix.1999.1080p.mkv")
    preview = FileOrganizer().preview_organization([item], _options(dirs, dry_run=False))
    assert preview[0]["status"] == "dry-run"
    assert preview[0]["destination_path"].endswith("The Matrix (1999) [1080p].mkv")
    assert list(dirs["movies"].iterdir()) == []


def test_missing_destination_is_skipped(dirs):
    item = _scanned(dirs["src"] / "Artist - Album - 01 - Song.mp3")
    summary = FileOrganizer().organize([item], _options(dirs))
    result = summary["results"][0]
    assert result["status"] == "skipped"
    assert result["error"] == "No destination configured for type: music"
    assert summary["skipped"] == 1


def test_file_already_in_place_is_skipped(dirs):
    target = dirs["movies"] / "The Matrix (1999)" / "The Matrix (1999) [1080p].mkv"
    item = _scanned(target)
    item["parsed"] = parse_filename("The.Matrix.1999.1080p.mkv")
    summary = FileOrganizer().organize([item], _options(dirs))
    assert summary["results"][0]["status"] == "skipped"
    assert summary["results"][0]["error"] == "File already in correct location"
    assert target.exists()


def test_conflict_skip_rename_overwrite(dirs):
    existing = dirs["movies"] / "The Matrix (1999)" / "The Matrix (1999) [1080p].mkv"
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"old")

    item = _scanned(dirs["src"] / "The.Matrix.1999.1080p.mkv")
    skip = FileOrganizer().organize([item], _options(dirs, operation="copy"))["results"][0]
    assert skip["status"] == "conflict"
    assert skip["conflict_action"] == "skip"

    rename = FileOrganizer().organize([item], _options(dirs, operation="copy", conflict_resolution="rename"))
    assert rename["results"][0]["destination_path"].endswith("The Matrix (1999) [1080p] (1).mkv")
    assert existing.read_bytes() == b"old"

    FileOrganizer().organize([item], _options(dirs, operation="copy", conflict_resolution="overwrite"))
    assert existing.read_bytes() == b"video"


def test_hardlink_falls_back_to_copy_across_devices(dirs, monkeypatch):
    def _cross_device(src, dst):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(file_organizer.os, "link", _cross_device)
    item = _scanned(dirs["src"] / "The.Matrix.1999.1080p.mkv")
    summary = FileOrganizer().organize([item], _options(dirs, operation="hardlink"))

    result = summary["results"][0]
    assert result["status"] == "success"
    assert result["operation"] == "copy"
    assert result["error"] == EXDEV_NOTE
    assert summary["copied"] == 1
    assert summary["hardlinked"] == 0
    assert os.path.exists(result["destination_path"])


def test_hardlink_same_device(dirs):
    item = _scanned(dirs["src"] / "The.Matrix.1999.1080p.mkv")
    summary = FileOrganizer().organize([item], _options(dirs, operation="hardlink"))
    result = summary["results"][0]
    assert summary["hardlinked"] == 1
    assert os.stat(result["destination_path"]).st_ino == os.stat(item["file_path"]).st_ino
    with open(result["destination_path"], "rb") as dst, open(item["file_path"], "rb") as src:
        assert dst.read() == src.read()


def test_move_cleans_up_empty_source_folder(dirs):
    item = _scanned(dirs["src"] / "The Matrix" / "The.Matrix.1999.1080p.mkv")
    FileOrganizer().organize([item], _options(dirs, operation="move", cleanup_empty_folders=True))
    assert not (dirs["src"] / "The Matrix").exists()


def test_per_item_failure_does_not_stop_run(dirs):
    missing = {
        "file_path": str(dirs["src"] / "Gone.2001.mkv"),
        "parsed": parse_filename("Gone.2001.mkv"),
        "file_size": 0,
        "modified_at": "",
    }
    ok = _scanned(dirs["src"] / "Heat.1995.mkv")
    summary = FileOrganizer().organize([missing, ok], _options(dirs, operation="copy"))
    assert [r["status"] for r in summary["results"]] == ["failed", "success"]
    assert summary["failed"] == 1
    assert summary["copied"] == 1


def test_abort_stops_after_current_file(dirs):
    items = [_scanned(dirs["src"] / f"Movie{i}.200{i}.mkv") for i in range(3)]
    organizer = FileOrganizer()
    organizer.on("file", lambda _result: organizer.abort())
    summary = organizer.organize(items, _options(dirs, operation="copy"))
    assert summary["total_processed"] == 1
    assert summary["success"] is False
    assert organizer.get_progress()["status"] == "failed"


def test_get_unique_filename(tmp_path):
    target = tmp_path / "a.mkv"
    assert get_unique_filename(str(target)) == str(target)
    target.write_bytes(b"")
    (tmp_path / "a (1).mkv").write_bytes(b"")
    assert get_unique_filename(str(target)) == str(tmp_path / "a (2).mkv")


def test_get_unique_filename_gives_up(tmp_path, monkeypatch):
    monkeypatch.setattr(file_organizer.os.path, "lexists", lambda _p: True)
    with pytest.raises(RuntimeError):
        get_unique_filename(str(tmp_path / "a.mkv"))


def _broken_naming():
    naming = {section: dict(formats) for section, formats in DEFAULT_NAMING_CONFIG.items()}
    naming["movies"]["file_format"] = 5
    return naming


def test_bad_template_fails_only_that_item(dirs):
    movie = _scanned(dirs["src"] / "The.Matrix.1999.1080p.mkv")
    episode = _scanned(dirs["src"] / "Breaking.Bad.S01E01.Pilot.720p.mkv")
    summary = FileOrganizer().organize(
        [movie, episode], _options(dirs, operation="copy", naming_config=_broken_naming()),
    )

    assert summary["success"] is True
    assert summary["failed"] == 1
    assert summary["copied"] == 1
    failed, copied = summary["results"]
    assert failed["status"] == "failed"
    assert failed["source_path"] == movie["file_path"]
    assert "replace" in failed["error"]
    assert copied["status"] == "success"


def test_preview_reports_bad_template_per_item(dirs):
    movie = _scanned(dirs["src"] / "The.Matrix.1999.1080p.mkv")
    preview = FileOrganizer().preview_organization([movie], _options(dirs, naming_config=_broken_naming()))
    assert preview[0]["status"] == "failed"
    assert preview[0]["destination_path"] == ""


def test_cleanup_stops_at_scan_root(dirs):
    item = _scanned(dirs["src"] / "The Matrix" / "The.Matrix.1999.1080p.mkv")
    item["root_path"] = str(dirs["src"])
    FileOrganizer().organize([item], _options(dirs, operation="move", cleanup_empty_folders=True))
    assert not (dirs["src"] / "The Matrix").exists()
    assert dirs["src"].is_dir()


def test_cleanup_empty_folders_keeps_stop_folder(tmp_path):
    root = tmp_path / "media"
    nested = root / "a" / "b"
    nested.mkdir(parents=True)
    file_organizer.cleanup_empty_folders(str(nested), stop_at=str(root))
    assert not (root / "a").exists()
    assert root.is_dir()

    outside = tmp_path / "elsewhere"
    outside.mkdir()
    file_organizer.cleanup_empty_folders(str(outside), stop_at=str(root))
    assert outside.is_dir()
