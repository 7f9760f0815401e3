import time

import pytest

from library_db import LibraryDB, scanned_to_library_item


def _scanned(path, **parsed):
    parsed.setdefault("type", "movie")
    parsed.setdefault("original_filename", path.rsplit("/", 1)[-1])
    return {"file_path": path, "parsed": parsed, "file_size": 100, "modified_at": "2024-01-01T00:00:00+00:00"}


@pytest.fixture
def library(tmp_path):
    return LibraryDB(str(tmp_path / "data" / "library.db"))


def test_scanned_to_library_item_titles():
    music = scanned_to_library_item(_scanned("/m/a.mp3", type="music", title="Song", artist="Band", track=1))
    assert music["kind"] == "music"
    assert music["title"] == "Band - Song"
    assert music["metadata"] == {"original_filename": "a.mp3", "artist": "Band", "track": 1}

    book = scanned_to_library_item(_scanned("/b/a.epub", type="book", title="Dune", author="Frank Herbert"))
    assert book["title"] == "Frank Herbert - Dune"

    unknown = scanned_to_library_item(_scanned("/x/a.mkv", type="unknown", title="Thing"))
    assert unknown["kind"] == "movie"


def test_merge_inserts_then_updates(library):
    first = [
        _scanned("/m/heat.mkv", title="Heat", year=1995, quality="720p"),
        _scanned("/t/bb.mkv", type="series", title="Breaking Bad", season=1, episode=1),
    ]
    assert library.merge_scanned_items(first) == (2, 0)
    heat_id = library.find_by_title("heat", kind="movie")[0]["id"]

    again = [_scanned("/m/Heat.1080p.mkv", title="HEAT", year=1995, quality="1080p")]
    assert library.merge_scanned_items(again) == (0, 1)

    item = library.get_item(heat_id)
    assert item["quality"] == "1080p"
    assert item["file_path"] == "/m/Heat.1080p.mkv"
    assert item["modified_at"] == "2024-01-01T00:00:00+00:00"
    assert item["updated_at"] is not None
    assert library.count_items() == 2
    assert library.count_items("series") == 1


def test_items_pagination_and_metadata(library):
    for i in range(5):
        library.add_item("movie", f"Movie {i}", metadata={"codec": "x264"})
    library.add_item("series", "Show")

    page = library.get_items(kind="movie", limit=2, offset=0)
    assert [i["title"] for i in page] == ["Movie 4", "Movie 3"]
    assert page[0]["metadata"] == {"codec": "x264"}
    assert len(library.get_items(limit=10, offset=4)) == 2


def test_relocate_and_delete(library):
    item_id = library.add_item("movie", "Heat", file_path="/downloads/heat.mkv")
    assert library.relocate("/downloads/heat.mkv", "/movies/Heat (1995)/Heat (1995).mkv") == 1
    assert library.get_item(item_id)["file_path"] == "/movies/Heat (1995)/Heat (1995).mkv"
    assert library.relocate("/nowhere.mkv", "/x.mkv") == 0

    assert library.delete_item(item_id) is True
    assert library.get_item(item_id) is None
    assert library.delete_item(item_id) is False


def test_activity_log(library):
    library.log_event("scan_completed", detail="3 found")
    library.log_event("organize_completed", title="run", job_id="abc")
    activity = library.get_activity()
    assert [a["event_type"] for a in activity] == ["organize_completed", "scan_completed"]
    assert library.count_activity() == 2


def test_cleanup_activity(library, monkeypatch):
    library.log_event("old")
    monkeypatch.setattr(time, "time", lambda: 1e12)
    assert library.cleanup_activity(days=1) == 1
    assert library.count_activity() == 0
