import sqlite3


def test_apply_migrations_creates_expected_tables(tmp_path):
    from db_migrations import apply_migrations, get_migration_status

    db = tmp_path / "fresh.db"
    conn = sqlite3.connect(str(db))
    try:
        applied = apply_migrations(conn)
        assert applied == 2
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        }
        assert "library_items" in tables
        assert "activity_log" in tables
        assert "schema_migrations" in tables
        status = get_migration_status(conn)
        assert [s["name"] for s in status] == ["0001_library_tables", "0002_library_item_timestamps"]
        assert apply_migrations(conn) == 0
    finally:
        conn.close()


def test_apply_migrations_upgrades_legacy_library_items_table(tmp_path):
    from db_migrations import apply_migrations

    db = tmp_path / "legacy.db"
    conn = sqlite3.connect(str(db))
    try:
        conn.execute(
            "CREATE TABLE library_items (id INTEGER PRIMARY KEY, kind TEXT NOT NULL, title TEXT NOT NULL)"
        )
        conn.execute("INSERT INTO library_items (kind, title) VALUES ('movie', 'Heat')")
        conn.commit()
        apply_migrations(conn)
        cols = [r[1] for r in conn.execute("PRAGMA table_info(library_items)").fetchall()]
        assert "modified_at" in cols
        assert "updated_at" in cols
        assert conn.execute("SELECT title FROM library_items").fetchone()[0] == "Heat"
    finally:
        conn.close()
