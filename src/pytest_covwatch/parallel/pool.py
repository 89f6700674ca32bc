"""Worker pool for running test units in parallel.

This module provides the WorkerPool class that bounds how many test units are
handed to the execution collaborator at once. Each unit runs in its own
subprocess (see CoverageRunner), so the pool's workers are threads that only
wait on those subprocesses.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
import os
from typing import TYPE_CHECKING, Self

from pytest_covwatch.errors import CycleCancelled


if TYPE_CHECKING:
    import threading

    from pytest_covwatch.discovery.unit import TestUnit
    from pytest_covwatch.execution.protocol import TestExecutor
    from pytest_covwatch.execution.record import ExecutionRecord


class WorkerPool:
    """Manages a bounded pool of workers invoking the execution collaborator.

    Attributes:
        max_workers: Maximum number of units running at once.

    Example:
        >>> with WorkerPool(executor, max_workers=4) as pool:
        ...     future = pool.submit(unit)
    """

    def __init__(
        self,
        executor: TestExecutor,
        max_workers: int | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Initialize the worker pool.

        Args:
            executor: The collaborator that runs a single unit.
            max_workers: Maximum number of concurrent units. Defaults to CPU count.
            cancel: Once set, units that have not started yet are not handed to
                the executor; their futures raise CycleCancelled.
        """
        self._test_executor = executor
        self._cancel = cancel
        self._max_workers = max_workers if max_workers is not None else (os.cpu_count() or 4)
        self._executor: ThreadPoolExecutor | None = None
        self._shutdown_called = False

    @property
    def max_workers(self) -> int:
        """Return the maximum number of workers."""
        return self._max_workers

    def __enter__(self) -> Self:
        """Enter the context manager, starting the worker pool."""
        self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix='covwatch-worker')
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit the context manager, shutting down the pool.

        On an exception pending work is cancelled instead of awaited.
        """
        self.shutdown(wait=exc_type is None)

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the worker pool.

        Args:
            wait: If True, wait for pending work to complete. If False, cancel
                  pending work immediately.
        """
        if self._shutdown_called:
            return

        self._shutdown_called = True
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=not wait)
            self._executor = None

    def submit(self, unit: TestUnit) -> Future[ExecutionRecord]:
        """Submit a unit for execution.

        Returns:
            Future that will contain the ExecutionRecord, or raise the
            collaborator's ExecutionError, or CycleCancelled if the
            batch was abandoned before the unit started.

        Raises:
            RuntimeError: If the pool is not active (not in context).
        """
        if self._executor is None:
            msg = 'WorkerPool is not active. Use as context manager.'
            raise RuntimeError(msg)

        return self._executor.submit(self._run, unit)

    def _run(self, unit: TestUnit) -> ExecutionRecord:
        if self._cancel is not None and self._cancel.is_set():
            msg = f'{unit.node_id} was not started, the batch was abandoned'
            raise CycleCancelled(msg)
        return self._test_executor.run(unit)
