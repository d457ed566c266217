"""Bounded fan-out of link resolution over a channel list."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Sequence

from ..models import ChannelDescriptor, ExtractionResult, FailureReason

LOGGER = logging.getLogger(__name__)

Resolve = Callable[[ChannelDescriptor], ExtractionResult]
ProgressCallback = Callable[[ExtractionResult], None]


class ExtractionScheduler:
    """Run ``resolve`` over every channel with at most ``concurrency`` in flight.

    Workers are daemon threads pulling from a shared queue, so a finished
    resolution immediately frees its worker for the next queued channel. One
    call that raises becomes a failed result and never cancels its siblings.
    The whole phase shares one wall-clock budget; whatever is still queued or
    running when it expires is abandoned and reported as a timeout. Abandoned
    calls keep running in the background but their results are discarded, and
    they never hold the process open at exit.
    """

    def __init__(
        self,
        resolve: Resolve,
        *,
        concurrency: int = 8,
        time_budget: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._resolve = resolve
        self.concurrency = max(1, int(concurrency))
        self.time_budget = float(time_budget)
        self._clock = clock

    def run(
        self,
        channels: Sequence[ChannelDescriptor],
        *,
        on_result: ProgressCallback | None = None,
    ) -> list[ExtractionResult]:
        if not channels:
            return []

        deadline = self._clock() + self.time_budget
        jobs: "queue.Queue[tuple[int, ChannelDescriptor]]" = queue.Queue()
        finished: "queue.Queue[tuple[int, ExtractionResult]]" = queue.Queue()
        abandoned = threading.Event()
        pending = dict(enumerate(channels))
        for item in pending.items():
            jobs.put(item)
        for index in range(min(self.concurrency, len(channels))):
            threading.Thread(
                target=self._worker_loop,
                args=(jobs, finished, abandoned),
                name=f"link-resolver-{index}",
                daemon=True,
            ).start()

        results: list[ExtractionResult] = []
        try:
            while pending:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break
                try:
                    position, result = finished.get(timeout=remaining)
                except queue.Empty:
                    break
                pending.pop(position)
                self._emit(result, results, on_result)
        finally:
            abandoned.set()

        # Results that landed between the last wait and the deadline still count.
        while pending:
            try:
                position, result = finished.get_nowait()
            except queue.Empty:
                break
            pending.pop(position)
            self._emit(result, results, on_result)

        if pending:
            LOGGER.warning(
                "Extraction budget of %.1fs exhausted; abandoning %d channel(s)",
                self.time_budget,
                len(pending),
            )
            for channel in pending.values():
                self._emit(ExtractionResult.failure(channel, FailureReason.TIMEOUT), results, on_result)
        return results

    def _worker_loop(
        self,
        jobs: "queue.Queue[tuple[int, ChannelDescriptor]]",
        finished: "queue.Queue[tuple[int, ExtractionResult]]",
        abandoned: threading.Event,
    ) -> None:
        while not abandoned.is_set():
            try:
                position, channel = jobs.get_nowait()
            except queue.Empty:
                return
            finished.put((position, self._settle(channel)))

    @staticmethod
    def _emit(
        result: ExtractionResult,
        results: list[ExtractionResult],
        on_result: ProgressCallback | None,
    ) -> None:
        results.append(result)
        if on_result is not None:
            on_result(result)

    def _settle(self, channel: ChannelDescriptor) -> ExtractionResult:
        try:
            result = self._resolve(channel)
        except Exception:  # noqa: BLE001 - one channel must not fail the run
            LOGGER.exception("Resolver raised for channel %s", channel.name)
            return ExtractionResult.failure(channel, FailureReason.ERROR)
        if not isinstance(result, ExtractionResult):
            LOGGER.error("Resolver returned %r for channel %s", type(result).__name__, channel.name)
            return ExtractionResult.failure(channel, FailureReason.ERROR)
        return result


__all__ = ["ExtractionScheduler"]
