"""CycleCoordinator: serialize watch cycles behind a single consumer.

File events arrive on the watcher's thread at any rate. The coordinator turns
them into at most one queued cycle: a trigger while a cycle is already queued
is coalesced into it, because the queued cycle will diff the working tree
anyway and pick the newer change up. Cycles themselves run one at a time on
the coordinator's thread, so two cycles never commit concurrently.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_covwatch.reporting.aggregate import AggregateReport
    from pytest_covwatch.watch.cycle import CycleResult, WatchCycle


logger = logging.getLogger(__name__)

_TRIGGER = object()


class CycleCoordinator:
    """Runs WatchCycles one at a time in response to triggers.

    Attributes:
        cycles_run: Number of cycles completed (committed or failed).

    Example:
        >>> coordinator = CycleCoordinator(cycle, report, on_result=reporter.write_cycle)
        >>> coordinator.start()
        >>> coordinator.trigger()
        True
        >>> coordinator.stop()
    """

    POLL_INTERVAL = 0.1

    def __init__(
        self,
        cycle: WatchCycle,
        report: AggregateReport,
        *,
        on_result: Callable[[CycleResult], None] | None = None,
        abandon_on_change: bool = False,
    ) -> None:
        """Create a coordinator.

        Args:
            cycle: The cycle to run on every trigger.
            report: Supplies the committed snapshot each cycle starts from.
            on_result: Called with each CycleResult on the coordinator thread.
            abandon_on_change: Cancel the running cycle when a new trigger
                arrives instead of letting it finish first.
        """
        self._cycle = cycle
        self._report = report
        self._on_result = on_result
        self._abandon_on_change = abandon_on_change
        self._queue: queue.Queue[object] = queue.Queue(maxsize=1)
        self._cancel = threading.Event()
        self._busy = threading.Event()
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None
        self.cycles_run = 0

    @property
    def is_running(self) -> bool:
        """Return True while the consumer thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_busy(self) -> bool:
        """Return True while a cycle is in flight."""
        return self._busy.is_set()

    def trigger(self) -> bool:
        """Request a cycle.

        Returns:
            True if a cycle was queued, False if the request was coalesced
            into one that is already waiting.
        """
        if self._abandon_on_change and self._busy.is_set():
            logger.debug('Change arrived mid-cycle, abandoning the running cycle')
            self._cancel.set()
        try:
            self._queue.put_nowait(_TRIGGER)
        except queue.Full:
            logger.debug('Cycle already queued, coalescing trigger')
            return False
        return True

    def run_once(self) -> CycleResult:
        """Run one cycle synchronously on the calling thread."""
        self._cancel.clear()
        self._busy.set()
        try:
            result = self._cycle.run(self._report.snapshot, self._cancel)
        finally:
            self._busy.clear()
        self.cycles_run += 1
        if self._on_result is not None:
            self._on_result(result)
        return result

    def start(self) -> None:
        """Start the consumer thread.

        Raises:
            RuntimeError: If the coordinator is already running.
        """
        if self.is_running:
            msg = 'CycleCoordinator is already running'
            raise RuntimeError(msg)
        self._stopping.clear()
        self._thread = threading.Thread(target=self._loop, name='covwatch-coordinator', daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the consumer thread, abandoning any cycle in flight."""
        if self._thread is None:
            return
        self._stopping.set()
        self._cancel.set()
        self._thread.join(timeout)
        self._thread = None

    def _loop(self) -> None:
        while not self._stopping.is_set():
            try:
                self._queue.get(timeout=self.POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                self.run_once()
            except Exception:
                logger.exception('Watch cycle crashed, waiting for the next change')

    def __enter__(self) -> CycleCoordinator:
        """Start the coordinator on context entry."""
        self.start()
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: object,
    ) -> None:
        """Stop the coordinator on context exit."""
        self.stop()
