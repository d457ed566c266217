"""SQLite schema management for the live link store."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from ..errors import PersistenceError


LOGGER = logging.getLogger(__name__)

LINK_TABLE = "live_links"
META_TABLE = "meta"
LOG_TABLE = "sync_logs"
SHADOW_SUFFIX = "__shadow"


@dataclass(frozen=True, slots=True)
class Column:
    name: str
    ddl: str


# Desired shape of the link table, in column order.
LINK_COLUMNS: tuple[Column, ...] = (
    Column("name", "name TEXT PRIMARY KEY"),
    Column("url", "url TEXT"),
    Column("extractor", "extractor TEXT"),
    Column("quality", "quality TEXT"),
    Column("last_updated", "last_updated TEXT"),
    Column("status", "status TEXT DEFAULT 'active'"),
)
LINK_COLUMN_NAMES = tuple(column.name for column in LINK_COLUMNS)

# Columns written by earlier deployments that map onto a desired column.
LEGACY_ALIASES: dict[str, str] = {
    "m3u8_url": "url",
}


@dataclass(slots=True)
class SchemaReport:
    """What ``ensure_schema`` had to change; empty when already conformant."""

    created: list[str] = field(default_factory=list)
    added_columns: list[str] = field(default_factory=list)
    migrated: bool = False
    copied_rows: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.created or self.added_columns or self.migrated)


def connect(db_path: Path | str) -> sqlite3.Connection:
    """Return an autocommit SQLite connection; transactions are explicit."""

    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(
        str(db_path),
        isolation_level=None,
        check_same_thread=False,
    )
    connection.row_factory = sqlite3.Row
    if str(db_path) != ":memory:":
        connection.execute("PRAGMA journal_mode=WAL;")
    connection.execute("PRAGMA synchronous=NORMAL;")
    return connection


@contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the block inside ``BEGIN IMMEDIATE``; roll back on any exception."""

    connection.execute("BEGIN IMMEDIATE")
    try:
        yield connection
    except BaseException:
        if connection.in_transaction:
            connection.execute("ROLLBACK")
        raise
    else:
        connection.execute("COMMIT")


def _table_exists(connection: sqlite3.Connection, table: str) -> bool:
    row = connection.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?",
        (table,),
    ).fetchone()
    return row is not None


def _table_info(connection: sqlite3.Connection, table: str) -> list[sqlite3.Row]:
    return list(connection.execute(f"PRAGMA table_info({table})"))


def _column_names(connection: sqlite3.Connection, table: str) -> list[str]:
    return [row[1] for row in _table_info(connection, table)]


def _primary_key(connection: sqlite3.Connection, table: str) -> list[str]:
    keyed = sorted((row[5], row[1]) for row in _table_info(connection, table) if row[5])
    return [name for _, name in keyed]


def _link_table_ddl(table: str) -> str:
    body = ",\n  ".join(column.ddl for column in LINK_COLUMNS)
    return f"CREATE TABLE IF NOT EXISTS {table} (\n  {body}\n)"


def _create_base_tables(connection: sqlite3.Connection, report: SchemaReport) -> None:
    statements = {
        LINK_TABLE: _link_table_ddl(LINK_TABLE),
        META_TABLE: f"CREATE TABLE IF NOT EXISTS {META_TABLE} (key TEXT PRIMARY KEY, value TEXT)",
        LOG_TABLE: (
            f"CREATE TABLE IF NOT EXISTS {LOG_TABLE} ("
            "run_id TEXT, timestamp TEXT, severity TEXT, message TEXT)"
        ),
    }
    missing = [table for table in statements if not _table_exists(connection, table)]
    if not missing:
        return
    try:
        with transaction(connection):
            for table in missing:
                connection.execute(statements[table])
            if LOG_TABLE in missing:
                connection.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{LOG_TABLE}_run ON {LOG_TABLE}(run_id)"
                )
    except sqlite3.Error as exc:
        raise PersistenceError(f"failed to create tables: {exc}", table=",".join(missing)) from exc
    report.created.extend(missing)
    LOGGER.info("Created tables %s", ", ".join(missing))


def _needs_shadow_migration(existing: list[str], primary_key: list[str]) -> bool:
    if primary_key != ["name"]:
        return True
    # A legacy column can only be carried over by copying into a fresh table.
    return any(
        legacy in existing and target not in existing
        for legacy, target in LEGACY_ALIASES.items()
    )


def _add_columns(connection: sqlite3.Connection, missing: list[str]) -> None:
    by_name = {column.name: column for column in LINK_COLUMNS}
    with transaction(connection):
        for name in missing:
            LOGGER.info("Adding column %s.%s", LINK_TABLE, name)
            connection.execute(f"ALTER TABLE {LINK_TABLE} ADD COLUMN {by_name[name].ddl}")


def _shadow_migrate(connection: sqlite3.Connection, existing: list[str]) -> int:
    """Rebuild the link table through a shadow copy; returns rows copied."""

    shadow = f"{LINK_TABLE}{SHADOW_SUFFIX}"
    copy_pairs: list[tuple[str, str]] = [
        (name, name) for name in LINK_COLUMN_NAMES if name in existing
    ]
    for legacy, target in LEGACY_ALIASES.items():
        if legacy in existing and target not in existing:
            copy_pairs.append((legacy, target))
    targets = ", ".join(target for _, target in copy_pairs)
    sources = ", ".join(source for source, _ in copy_pairs)

    with transaction(connection):
        connection.execute(f"DROP TABLE IF EXISTS {shadow}")
        connection.execute(_link_table_ddl(shadow))
        copied = 0
        if "name" in existing:
            skipped = connection.execute(
                f"SELECT COUNT(*) FROM {LINK_TABLE} WHERE name IS NULL OR name = ''"
            ).fetchone()[0]
            if skipped:
                LOGGER.warning(
                    "Skipping %d %s rows without a name during migration", skipped, LINK_TABLE
                )
            cursor = connection.execute(
                f"INSERT OR REPLACE INTO {shadow} ({targets}) "
                f"SELECT {sources} FROM {LINK_TABLE} "
                "WHERE name IS NOT NULL AND name <> '' ORDER BY rowid"
            )
            copied = max(cursor.rowcount, 0)
        else:
            rows = connection.execute(f"SELECT COUNT(*) FROM {LINK_TABLE}").fetchone()[0]
            if rows:
                LOGGER.warning(
                    "%s has %d rows but no name column; rows cannot be keyed and are not copied",
                    LINK_TABLE,
                    rows,
                )
        connection.execute(f"DROP TABLE {LINK_TABLE}")
        connection.execute(f"ALTER TABLE {shadow} RENAME TO {LINK_TABLE}")
    return copied


def ensure_schema(connection: sqlite3.Connection) -> SchemaReport:
    """Create or evolve the tables; a conformant schema is left untouched."""

    report = SchemaReport()
    _create_base_tables(connection, report)

    existing = _column_names(connection, LINK_TABLE)
    missing = [name for name in LINK_COLUMN_NAMES if name not in existing]
    primary_key = _primary_key(connection, LINK_TABLE)
    if not missing and primary_key == ["name"]:
        return report

    if not _needs_shadow_migration(existing, primary_key):
        try:
            _add_columns(connection, missing)
        except sqlite3.OperationalError as exc:
            LOGGER.warning(
                "In-place column add failed for %s (%s); falling back to shadow migration",
                LINK_TABLE,
                exc,
            )
        else:
            report.added_columns.extend(missing)
            return report

    LOGGER.info(
        "Migrating %s via shadow table (missing=%s primary_key=%s)",
        LINK_TABLE,
        missing,
        primary_key,
    )
    try:
        report.copied_rows = _shadow_migrate(connection, existing)
    except sqlite3.Error as exc:
        LOGGER.exception("Shadow migration of %s failed; previous table kept", LINK_TABLE)
        raise PersistenceError(
            f"shadow migration failed: {exc}", table=LINK_TABLE, columns=missing
        ) from exc
    report.migrated = True
    report.added_columns.extend(missing)
    LOGGER.info("Migrated %s, copied %d rows", LINK_TABLE, report.copied_rows)
    return report


__all__ = [
    "Column",
    "LEGACY_ALIASES",
    "LINK_COLUMNS",
    "LINK_COLUMN_NAMES",
    "LINK_TABLE",
    "LOG_TABLE",
    "META_TABLE",
    "SchemaReport",
    "connect",
    "ensure_schema",
    "transaction",
]
