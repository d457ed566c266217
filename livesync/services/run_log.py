"""Append-only structured log of sync runs, keyed by run id."""

from __future__ import annotations

import logging
import sqlite3
import threading

from ..db.schema import LOG_TABLE
from ..logging_setup import get_run_logger
from ..models import Severity, SyncLogEntry, isoformat, utcnow

_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class RunLogger:
    """Persist per-run log entries alongside the process log.

    Entries are observability only: a failed insert is reported through the
    process log and never interrupts the run that produced it.
    """

    def __init__(self, connection: sqlite3.Connection, *, lock: threading.RLock | None = None) -> None:
        self._conn = connection
        self._lock = lock or threading.RLock()
        self._logger = get_run_logger()

    def append(self, run_id: str, severity: Severity | str, message: str) -> SyncLogEntry:
        level = Severity(severity)
        entry = SyncLogEntry(
            run_id=run_id,
            timestamp=isoformat(utcnow()),
            severity=level,
            message=str(message),
        )
        self._logger.log(_LEVELS[level], "%s %s", level.icon, entry.message, extra={"run_id": run_id})
        try:
            with self._lock:
                self._conn.execute(
                    f"INSERT INTO {LOG_TABLE} (run_id, timestamp, severity, message) VALUES (?, ?, ?, ?)",
                    (entry.run_id, entry.timestamp, entry.severity.value, entry.message),
                )
        except sqlite3.Error as exc:
            self._logger.warning(
                "Could not store log entry for run %s: %s", run_id, exc, extra={"run_id": run_id}
            )
        return entry

    def read(self, run_id: str) -> list[SyncLogEntry]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT run_id, timestamp, severity, message FROM {LOG_TABLE} "
                "WHERE run_id = ? ORDER BY rowid ASC",
                (run_id,),
            ).fetchall()
        entries: list[SyncLogEntry] = []
        for row in rows:
            try:
                severity = Severity(row[2])
            except ValueError:
                severity = Severity.INFO
            entries.append(SyncLogEntry(run_id=row[0], timestamp=row[1], severity=severity, message=row[3]))
        return entries


__all__ = ["RunLogger"]
