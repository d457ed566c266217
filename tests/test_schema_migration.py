from __future__ import annotations

import sqlite3

import pytest

from livesync.db.schema import (
    LINK_COLUMN_NAMES,
    LINK_TABLE,
    LOG_TABLE,
    META_TABLE,
    connect,
    ensure_schema,
)
from livesync.errors import PersistenceError


def _columns(conn: sqlite3.Connection) -> list[str]:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({LINK_TABLE})")]


def _primary_key(conn: sqlite3.Connection) -> list[str]:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({LINK_TABLE})") if row[5]]


def _tables(conn: sqlite3.Connection) -> set[str]:
    return {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}


class _FailingRename:
    """Connection proxy whose table rename fails mid-migration."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    def execute(self, sql: str, params=()):
        if "RENAME TO" in sql:
            raise sqlite3.OperationalError("simulated rename failure")
        return self._conn.execute(sql, params)


def test_fresh_database_gets_all_tables(tmp_path):
    conn = connect(tmp_path / "fresh.sqlite3")

    report = ensure_schema(conn)

    assert set(report.created) == {LINK_TABLE, META_TABLE, LOG_TABLE}
    assert {LINK_TABLE, META_TABLE, LOG_TABLE} <= _tables(conn)
    assert _columns(conn) == list(LINK_COLUMN_NAMES)
    assert _primary_key(conn) == ["name"]


def test_conformant_schema_is_left_untouched(tmp_path):
    conn = connect(tmp_path / "stable.sqlite3")
    ensure_schema(conn)

    again = ensure_schema(conn)

    assert not again.changed
    assert _columns(conn) == list(LINK_COLUMN_NAMES)


def test_missing_columns_are_added_in_place(tmp_path):
    conn = connect(tmp_path / "legacy.sqlite3")
    conn.execute(f"CREATE TABLE {LINK_TABLE} (name TEXT PRIMARY KEY, url TEXT, last_updated TEXT)")
    conn.execute(
        f"INSERT INTO {LINK_TABLE} (name, url, last_updated) VALUES (?, ?, ?)",
        ("News", "https://cdn.example/news.m3u8", "2024-01-01T00:00:00.000Z"),
    )

    report = ensure_schema(conn)

    assert report.added_columns == ["extractor", "quality", "status"]
    assert not report.migrated
    assert set(LINK_COLUMN_NAMES) <= set(_columns(conn))
    row = conn.execute(f"SELECT name, url, status FROM {LINK_TABLE}").fetchone()
    assert tuple(row) == ("News", "https://cdn.example/news.m3u8", "active")
    assert not ensure_schema(conn).changed


def test_table_without_name_key_is_rebuilt_through_shadow_copy(tmp_path):
    conn = connect(tmp_path / "unkeyed.sqlite3")
    conn.execute(f"CREATE TABLE {LINK_TABLE} (name TEXT, m3u8_url TEXT, extractor TEXT)")
    conn.executemany(
        f"INSERT INTO {LINK_TABLE} (name, m3u8_url, extractor) VALUES (?, ?, ?)",
        [
            ("News", "https://cdn.example/old.m3u8", "probe"),
            ("Sports", "https://cdn.example/sports.m3u8", "probe"),
            ("News", "https://cdn.example/new.m3u8", "probe"),
            (None, "https://cdn.example/orphan.m3u8", "probe"),
        ],
    )

    report = ensure_schema(conn)

    assert report.migrated
    assert _primary_key(conn) == ["name"]
    assert _columns(conn) == list(LINK_COLUMN_NAMES)
    assert f"{LINK_TABLE}__shadow" not in _tables(conn)
    rows = conn.execute(f"SELECT name, url, status FROM {LINK_TABLE} ORDER BY name").fetchall()
    assert [tuple(row) for row in rows] == [
        ("News", "https://cdn.example/new.m3u8", "active"),
        ("Sports", "https://cdn.example/sports.m3u8", "active"),
    ]
    assert not ensure_schema(conn).changed


def test_legacy_url_column_is_carried_over(tmp_path):
    conn = connect(tmp_path / "alias.sqlite3")
    conn.execute(f"CREATE TABLE {LINK_TABLE} (name TEXT PRIMARY KEY, m3u8_url TEXT, last_updated TEXT)")
    conn.execute(
        f"INSERT INTO {LINK_TABLE} VALUES (?, ?, ?)",
        ("Music", "https://cdn.example/music.m3u8", "2024-02-02T00:00:00.000Z"),
    )

    report = ensure_schema(conn)

    assert report.migrated
    row = conn.execute(f"SELECT url, last_updated FROM {LINK_TABLE} WHERE name = 'Music'").fetchone()
    assert tuple(row) == ("https://cdn.example/music.m3u8", "2024-02-02T00:00:00.000Z")
    assert "m3u8_url" not in _columns(conn)


def test_failed_migration_keeps_previous_table(tmp_path):
    conn = connect(tmp_path / "broken.sqlite3")
    conn.execute(f"CREATE TABLE {LINK_TABLE} (name TEXT, url TEXT)")
    conn.execute(f"INSERT INTO {LINK_TABLE} VALUES ('News', 'https://cdn.example/news.m3u8')")

    with pytest.raises(PersistenceError) as excinfo:
        ensure_schema(_FailingRename(conn))

    assert excinfo.value.table == LINK_TABLE
    assert "table=live_links" in str(excinfo.value)
    assert not conn.in_transaction
    assert _columns(conn) == ["name", "url"]
    assert f"{LINK_TABLE}__shadow" not in _tables(conn)
    assert tuple(conn.execute(f"SELECT name, url FROM {LINK_TABLE}").fetchone()) == (
        "News",
        "https://cdn.example/news.m3u8",
    )
