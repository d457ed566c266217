"""Idempotent persistence for live link records and the sync gate."""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from ..errors import PersistenceError
from ..models import ExtractionResult, LiveLinkRecord, isoformat, parse_timestamp, utcnow
from .schema import LINK_TABLE, META_TABLE, SchemaReport, connect, ensure_schema, transaction


LOGGER = logging.getLogger(__name__)

LAST_UPDATE_KEY = "last_update"

_UPSERT_SQL = f"""
INSERT INTO {LINK_TABLE} (name, url, extractor, quality, last_updated, status)
VALUES (?, ?, ?, ?, ?, 'active')
ON CONFLICT(name) DO UPDATE SET
    url = excluded.url,
    extractor = excluded.extractor,
    quality = excluded.quality,
    last_updated = excluded.last_updated,
    status = excluded.status
"""


class LinkStore:
    """Small helper around the SQLite database holding live links."""

    def __init__(self, db_path: Path | str, *, connection: sqlite3.Connection | None = None) -> None:
        self.path = db_path
        self._conn = connection if connection is not None else connect(db_path)
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # -- schema -----------------------------------------------------------------

    def ensure_schema(self) -> SchemaReport:
        with self._lock:
            return ensure_schema(self._conn)

    # -- writes -----------------------------------------------------------------

    def persist(self, results: Iterable[ExtractionResult], *, now: datetime | None = None) -> int:
        """Replace the link table with this run's successful results.

        Existing rows are cleared first so channels that vanished from the feed
        or stopped resolving do not linger as active. Results sharing a name are
        applied in order; the last one wins. Returns the number of distinct
        names written.
        """

        successes = [result for result in results if result.ok]
        stamp = isoformat(now or utcnow())
        rows = [
            (
                result.name,
                result.resolved_url,
                result.extractor_kind.value,
                result.quality,
                stamp,
            )
            for result in successes
        ]
        with self._lock:
            try:
                with transaction(self._conn):
                    self._conn.execute(f"DELETE FROM {LINK_TABLE}")
                    self._conn.executemany(_UPSERT_SQL, rows)
            except sqlite3.Error as exc:
                LOGGER.error(
                    "Rewrite of %s failed after preparing %d rows; rolled back: %s",
                    LINK_TABLE,
                    len(rows),
                    exc,
                )
                raise PersistenceError(f"link rewrite failed: {exc}", table=LINK_TABLE) from exc
        written = len({row[0] for row in rows})
        LOGGER.info("Persisted %d live links", written)
        return written

    def set_last_run_timestamp(self, value: datetime) -> None:
        with self._lock:
            try:
                with transaction(self._conn):
                    self._conn.execute(
                        f"INSERT INTO {META_TABLE} (key, value) VALUES (?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                        (LAST_UPDATE_KEY, isoformat(value)),
                    )
            except sqlite3.Error as exc:
                raise PersistenceError(
                    f"failed to record last run: {exc}", table=META_TABLE, columns=["value"]
                ) from exc

    # -- reads ------------------------------------------------------------------

    def get_last_run_timestamp(self) -> Optional[datetime]:
        """Return the gate timestamp, or ``None`` when no prior run is known."""

        with self._lock:
            try:
                row = self._conn.execute(
                    f"SELECT value FROM {META_TABLE} WHERE key = ?",
                    (LAST_UPDATE_KEY,),
                ).fetchone()
            except sqlite3.Error as exc:
                LOGGER.info("No readable sync gate (%s); treating as first run", exc)
                return None
        if row is None:
            return None
        parsed = parse_timestamp(row[0])
        if parsed is None:
            LOGGER.warning("Ignoring unparsable %s value %r", LAST_UPDATE_KEY, row[0])
        return parsed

    def get_link(self, name: str) -> Optional[LiveLinkRecord]:
        with self._lock:
            row = self._conn.execute(
                f"SELECT name, url, extractor, quality, last_updated, status "
                f"FROM {LINK_TABLE} WHERE name = ?",
                (name,),
            ).fetchone()
        return _row_to_record(row) if row is not None else None

    def active_url(self, name: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                f"SELECT url FROM {LINK_TABLE} WHERE name = ? AND status = 'active'",
                (name,),
            ).fetchone()
        if row is None or not row[0]:
            return None
        return str(row[0])

    def list_links(self) -> list[LiveLinkRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT name, url, extractor, quality, last_updated, status "
                f"FROM {LINK_TABLE} ORDER BY name"
            ).fetchall()
        return [_row_to_record(row) for row in rows]


def _row_to_record(row: sqlite3.Row) -> LiveLinkRecord:
    return LiveLinkRecord(
        name=row["name"],
        url=row["url"] or "",
        extractor_kind=row["extractor"] or "",
        quality=row["quality"],
        last_updated=row["last_updated"],
        status=row["status"] or "active",
    )


__all__ = ["LAST_UPDATE_KEY", "LinkStore"]
