"""Execution scheduler: pick the units a cycle must run and run them.

Only added and modified units are dispatched; removed units are pruned from
the coverage table without running anything. Units are independent, so they
are handed to a bounded WorkerPool and their records collected in completion
order. A unit that fails to run is reported and excluded; the rest of the
batch carries on.
"""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, wait
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from pytest_covwatch.errors import CycleCancelled, ExecutionError
from pytest_covwatch.parallel.aggregator import ExecutionAggregator
from pytest_covwatch.parallel.pool import WorkerPool
from pytest_covwatch.parallel.pool_config import PoolConfig


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    import threading

    from pytest_covwatch.detection.changeset import ChangeSet
    from pytest_covwatch.discovery.unit import TestUnit, UnitId
    from pytest_covwatch.execution.protocol import TestExecutor
    from pytest_covwatch.execution.record import ExecutionRecord


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionOutcome:
    """Everything the EXECUTING stage produced.

    Attributes:
        records: Records of units that ran, sorted by unit id.
        failures: Units that failed to run, sorted by unit id.
    """

    records: tuple[ExecutionRecord, ...] = ()
    failures: tuple[ExecutionError, ...] = ()

    @property
    def dispatched(self) -> int:
        """Return how many units were handed to the execution collaborator."""
        return len(self.records) + len(self.failures)

    @property
    def failed_to_run(self) -> frozenset[UnitId]:
        """Return the ids of units that produced no record."""
        return frozenset(error.unit_id for error in self.failures)


class ExecutionScheduler:
    """Selects and dispatches the units affected by a ChangeSet.

    Attributes:
        config: Pool settings (concurrency bound and cancel polling).

    Example:
        >>> scheduler = ExecutionScheduler(CoverageRunner(Path('.')), PoolConfig(max_workers=2))
        >>> outcome = scheduler.execute(scheduler.schedule(changeset))
    """

    def __init__(
        self,
        executor: TestExecutor,
        config: PoolConfig | None = None,
        *,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> None:
        """Create a scheduler.

        Args:
            executor: Collaborator that runs one unit.
            config: Pool settings. Defaults to one worker per CPU.
            on_progress: Called with (completed, total) after each unit finishes.
        """
        self._executor = executor
        self.config = config or PoolConfig()
        self._on_progress = on_progress

    def schedule(self, changeset: ChangeSet) -> list[TestUnit]:
        """Return the units to execute for a changeset, deduplicated and ordered by node id."""
        unique: dict[UnitId, TestUnit] = {}
        for unit in changeset.to_run:
            unique[unit.unit_id] = unit
        return [unique[unit_id] for unit_id in sorted(unique)]

    def execute(
        self,
        units: Sequence[TestUnit],
        cancel: threading.Event | None = None,
    ) -> ExecutionOutcome:
        """Run units in parallel and collect their records.

        Args:
            units: Units to run.
            cancel: When set, pending units are cancelled and the batch is abandoned.

        Returns:
            The ExecutionOutcome with records and failures.

        Raises:
            CycleCancelled: If ``cancel`` was set before every unit finished.
        """
        if not units:
            return ExecutionOutcome()

        aggregator = ExecutionAggregator(total_units=len(units))
        logger.info('Running %d test unit(s) on up to %d worker(s)', len(units), self.config.max_workers)

        with WorkerPool(self._executor, max_workers=self.config.max_workers, cancel=cancel) as pool:
            futures = {pool.submit(unit): unit for unit in units}
            pending = set(futures)
            while pending:
                self._check_cancelled(cancel, pool, aggregator)
                done, pending = wait(pending, timeout=self.config.poll_interval, return_when=FIRST_COMPLETED)
                for future in done:
                    self._collect(futures[future], future.result if not future.cancelled() else None, aggregator)
            self._check_cancelled(cancel, pool, aggregator)

        return ExecutionOutcome(
            records=tuple(aggregator.get_records()),
            failures=tuple(aggregator.get_failures()),
        )

    def run(self, changeset: ChangeSet, cancel: threading.Event | None = None) -> ExecutionOutcome:
        """Schedule and execute the units of a changeset."""
        return self.execute(self.schedule(changeset), cancel)

    def _check_cancelled(
        self,
        cancel: threading.Event | None,
        pool: WorkerPool,
        aggregator: ExecutionAggregator,
    ) -> None:
        if cancel is None or not cancel.is_set():
            return
        pool.shutdown(wait=False)
        completed, total = aggregator.get_progress()
        msg = f'Execution abandoned after {completed}/{total} unit(s)'
        raise CycleCancelled(msg)

    def _collect(
        self,
        unit: TestUnit,
        result: Callable[[], ExecutionRecord] | None,
        aggregator: ExecutionAggregator,
    ) -> None:
        if result is None:
            aggregator.add_failure(ExecutionError(unit.unit_id, 'cancelled before it ran'))
        else:
            try:
                aggregator.add_record(result())
            except CycleCancelled:
                return
            except ExecutionError as exc:
                logger.warning('Could not run %s: %s', unit.node_id, exc.reason)
                aggregator.add_failure(exc)
            except Exception as exc:
                logger.warning('Error running %s: %s', unit.node_id, exc)
                aggregator.add_error(unit.unit_id, exc)

        if self._on_progress is not None:
            self._on_progress(*aggregator.get_progress())
