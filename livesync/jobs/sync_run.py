"""Time-gated sync run: load the feed, resolve every channel, persist."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

import requests

from ..config import SyncConfig
from ..db.store import LinkStore
from ..errors import FeedError, PersistenceError
from ..models import (
    RunSummary,
    Severity,
    SyncRun,
    SyncState,
    utcnow,
)
from ..services.feed import FeedLoader
from ..services.resolver import FormatFetcher, LinkResolver
from ..services.run_log import RunLogger
from .scheduler import ExtractionScheduler

LOGGER = logging.getLogger(__name__)


class SyncOrchestrator:
    """Drive one sync run through gate, load, extract and persist.

    States advance ``GATE_CHECK -> LOADING -> EXTRACTING -> PERSISTING ->
    DONE``; ``SKIPPED`` and ``ERROR`` are terminal. Feed and persistence
    failures end the run in ``ERROR`` without touching the gate timestamp,
    so the next trigger retries instead of waiting a full interval.
    """

    def __init__(
        self,
        *,
        feed_url: str,
        store: LinkStore,
        run_logger: RunLogger,
        feed_loader: FeedLoader,
        scheduler: ExtractionScheduler,
        min_interval: timedelta = timedelta(hours=6),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.feed_url = feed_url
        self.store = store
        self.run_logger = run_logger
        self.feed_loader = feed_loader
        self.scheduler = scheduler
        self.min_interval = min_interval
        self._clock = clock
        self._run_lock = threading.Lock()
        self.current_run: Optional[SyncRun] = None

    def run(self, *, force: bool = False) -> RunSummary:
        if not self._run_lock.acquire(blocking=False):
            LOGGER.info("Sync trigger ignored; a run is already in progress")
            active = self.current_run
            return RunSummary(
                run_id=active.run_id if active else None,
                state=SyncState.SKIPPED,
                skipped=True,
                reason="in-progress",
            )
        try:
            return self._run(force=force)
        finally:
            self.current_run = None
            self._run_lock.release()

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------
    def _run(self, *, force: bool) -> RunSummary:
        started = self._clock()
        run = SyncRun(run_id=uuid.uuid4().hex, started_at=started)
        self.current_run = run

        run.state = SyncState.GATE_CHECK
        try:
            self.store.ensure_schema()
        except PersistenceError as exc:
            self._log(run, Severity.ERROR, f"Schema check failed: {exc}")
            return self._failed(run, exc)
        last_run = self.store.get_last_run_timestamp()
        if last_run is not None and not force:
            elapsed = started - last_run
            if elapsed < self.min_interval:
                # Skips stay out of the run log; the run id is never handed out.
                run.state = SyncState.SKIPPED
                LOGGER.info(
                    "Skipping sync; last run %s is %.0fs old (minimum %.0fs)",
                    last_run.isoformat(),
                    elapsed.total_seconds(),
                    self.min_interval.total_seconds(),
                )
                return RunSummary(
                    run_id=None,
                    state=run.state,
                    skipped=True,
                    reason="interval",
                    last_run=last_run,
                    elapsed_ms=int(elapsed.total_seconds() * 1000),
                )

        self._log(run, Severity.INFO, "Starting sync" + (" (forced)" if force else ""))

        run.state = SyncState.LOADING
        try:
            feed = self.feed_loader.load(self.feed_url)
        except FeedError as exc:
            self._log(run, Severity.ERROR, f"Failed to load channel feed: {exc}")
            return self._failed(run, exc)
        channels = feed.channels
        self._log(run, Severity.INFO, f"Loaded {len(channels)} channels")
        if feed.invalid:
            self._log(run, Severity.WARNING, f"Dropped {feed.invalid} feed entries without a URL")

        run.state = SyncState.EXTRACTING
        self._log(
            run,
            Severity.INFO,
            f"Resolving links (concurrency={self.scheduler.concurrency}, "
            f"budget={self.scheduler.time_budget:.0f}s)",
        )
        results = self.scheduler.run(channels)
        failed = [result for result in results if not result.ok]
        self._log(
            run,
            Severity.SUCCESS if not failed else Severity.WARNING,
            f"Resolved {len(results) - len(failed)} of {len(results)} channels",
        )
        for result in failed:
            reason = result.failure_reason.value if result.failure_reason else "unknown"
            self._log(run, Severity.WARNING, f"{result.name}: {reason}")

        run.state = SyncState.PERSISTING
        self._log(run, Severity.INFO, "Rewriting live link table")
        try:
            updated = self.store.persist(results, now=self._clock())
            self.store.set_last_run_timestamp(self._clock())
        except PersistenceError as exc:
            self._log(run, Severity.ERROR, f"Failed to persist links: {exc}")
            return self._failed(run, exc)
        self._log(run, Severity.SUCCESS, f"Saved {updated} live links")

        run.state = SyncState.DONE
        elapsed_ms = int((self._clock() - started).total_seconds() * 1000)
        self._log(run, Severity.SUCCESS, f"Sync finished in {elapsed_ms}ms")
        return RunSummary(
            run_id=run.run_id,
            state=run.state,
            duration_ms=elapsed_ms,
            processed=len(channels),
            updated=updated,
            failed=len(failed),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _log(self, run: SyncRun, severity: Severity, message: str) -> None:
        run.entries.append(self.run_logger.append(run.run_id, severity, message))

    @staticmethod
    def _failed(run: SyncRun, exc: Exception) -> RunSummary:
        LOGGER.error("Sync run %s failed while %s: %s", run.run_id, run.state.value, exc)
        run.state = SyncState.ERROR
        return RunSummary(run_id=run.run_id, state=run.state, error=str(exc))


def build_session(user_agent: str) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "*/*",
            "Accept-Language": "en-US,en;q=0.9",
        }
    )
    return session


def build_orchestrator(
    config: SyncConfig,
    *,
    store: LinkStore | None = None,
    session: requests.Session | None = None,
    format_fetcher: FormatFetcher | None = None,
) -> SyncOrchestrator:
    """Wire the pipeline components described by ``config``."""

    store = store or LinkStore(config.db_path)
    store.ensure_schema()
    session = session or build_session(config.user_agent)
    resolver = LinkResolver(
        session,
        timeout=config.http_timeout,
        format_fetcher=format_fetcher,
        user_agent=config.user_agent,
    )
    return SyncOrchestrator(
        feed_url=config.feed_url,
        store=store,
        run_logger=RunLogger(store.connection, lock=store.lock),
        feed_loader=FeedLoader(session, timeout=config.http_timeout),
        scheduler=ExtractionScheduler(
            resolver,
            concurrency=config.concurrency,
            time_budget=config.time_budget,
        ),
        min_interval=config.min_interval,
    )


__all__ = ["SyncOrchestrator", "build_orchestrator", "build_session"]
