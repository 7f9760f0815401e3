from verify_store import VerifyResultStore, result_key


def test_result_key():
    assert result_key("movie", 12) == "movie:12"


def test_save_and_load(tmp_path):
    store = VerifyResultStore(str(tmp_path / "nested" / "results.json"))
    assert store.load_all() == {}
    assert store.get("movie:1") is None

    store.save("movie:1", {"top_severity": "warn"})
    store.save("series:2", {"top_severity": "none"})
    store.save("movie:1", {"top_severity": "error"})

    assert store.get("movie:1") == {"top_severity": "error"}
    assert set(store.load_all()) == {"movie:1", "series:2"}
    assert not (tmp_path / "nested" / "results.json.tmp").exists()


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "results.json"
    path.write_text("{not json")
    store = VerifyResultStore(str(path))
    assert store.load_all() == {}
    store.save("book:3", {"ok": True})
    assert store.get("book:3") == {"ok": True}
