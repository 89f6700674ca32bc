"""WatchCycle: one detect, schedule, execute, attribute, commit pass.

The cycle is a small state machine:

    IDLE -> DETECTING -> SCHEDULING -> EXECUTING -> ATTRIBUTING -> COMMITTED -> IDLE
                  \\            \\             \\             \\
                   `------------`-------------`-------------`--> FAILED -> IDLE

A cycle takes the last committed snapshot as input and returns a CycleResult
carrying either a new committed snapshot or the untouched input. Cycle-scoped
errors (DiffError, AttributionError, CycleCancelled, StoreError) never leave a
partial commit behind; the next cycle diffs from the same baseline again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import time
from typing import TYPE_CHECKING

from pytest_covwatch.coverage.attributor import CoverageAttributor
from pytest_covwatch.errors import AttributionError, CovwatchError, CycleCancelled, DiffError, StoreError
from pytest_covwatch.parallel.scheduler import ExecutionOutcome
from pytest_covwatch.reporting.aggregate import CoverageDelta, coverage_delta


if TYPE_CHECKING:
    from collections.abc import Callable
    import threading

    from pytest_covwatch.detection.changeset import ChangeSet
    from pytest_covwatch.detection.detector import ChangeDetector
    from pytest_covwatch.parallel.scheduler import ExecutionScheduler
    from pytest_covwatch.reporting.aggregate import AggregateReport
    from pytest_covwatch.snapshot.models import Snapshot


logger = logging.getLogger(__name__)

CYCLE_ERRORS = (DiffError, AttributionError, CycleCancelled, StoreError)


class CycleState(Enum):
    """Stages of a watch cycle."""

    IDLE = 'idle'
    DETECTING = 'detecting'
    SCHEDULING = 'scheduling'
    EXECUTING = 'executing'
    ATTRIBUTING = 'attributing'
    COMMITTED = 'committed'
    FAILED = 'failed'


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one watch cycle.

    Attributes:
        state: COMMITTED or FAILED.
        snapshot: The new snapshot when committed, else the input snapshot.
        changeset: What was detected; None if detection itself failed.
        outcome: Records and failures of the units that ran.
        delta: Lines the cycle started or stopped covering.
        error: The cycle-scoped error that aborted the cycle, if any.
        duration_ms: Wall time of the cycle.
    """

    state: CycleState
    snapshot: Snapshot
    changeset: ChangeSet | None = None
    outcome: ExecutionOutcome = field(default_factory=ExecutionOutcome)
    delta: CoverageDelta = field(default_factory=CoverageDelta)
    error: CovwatchError | None = None
    duration_ms: float = 0.0

    @property
    def committed(self) -> bool:
        """Return True if the cycle advanced the snapshot."""
        return self.state is CycleState.COMMITTED

    @property
    def problems(self) -> list[CovwatchError]:
        """Return every contained or fatal error the cycle ran into."""
        problems: list[CovwatchError] = []
        if self.changeset is not None:
            problems.extend(self.changeset.errors)
        problems.extend(self.outcome.failures)
        if self.error is not None:
            problems.append(self.error)
        return problems


class WatchCycle:
    """Drives one cycle through detection, execution, attribution and commit.

    Example:
        >>> cycle = WatchCycle(detector, scheduler, report)
        >>> result = cycle.run(report.snapshot)
        >>> result.state
        <CycleState.COMMITTED: 'committed'>
    """

    def __init__(
        self,
        detector: ChangeDetector,
        scheduler: ExecutionScheduler,
        report: AggregateReport,
        attributor: CoverageAttributor | None = None,
        *,
        listener: Callable[[CycleState], None] | None = None,
    ) -> None:
        """Wire the cycle's components together.

        Args:
            detector: Computes the ChangeSet.
            scheduler: Picks and runs the affected units.
            report: Committed state; receives the new snapshot.
            attributor: Merges records. Defaults to a plain CoverageAttributor.
            listener: Called with each state the cycle enters.
        """
        self._detector = detector
        self._scheduler = scheduler
        self._report = report
        self._attributor = attributor or CoverageAttributor()
        self._listener = listener
        self._state = CycleState.IDLE

    @property
    def state(self) -> CycleState:
        """Return the stage the cycle is currently in."""
        return self._state

    def _enter(self, state: CycleState) -> None:
        self._state = state
        logger.debug('Cycle state: %s', state.value)
        if self._listener is not None:
            self._listener(state)

    def run(self, snapshot: Snapshot | None = None, cancel: threading.Event | None = None) -> CycleResult:
        """Run one cycle starting from ``snapshot``.

        Args:
            snapshot: Baseline state. Defaults to the report's committed snapshot.
            cancel: When set, the cycle is abandoned before it commits.

        Returns:
            The CycleResult. Contained errors (discovery, execution) are
            reported in it; cycle-scoped errors turn it into a FAILED result.
        """
        baseline = snapshot if snapshot is not None else self._report.snapshot
        start_time = time.monotonic()
        changeset: ChangeSet | None = None
        outcome = ExecutionOutcome()

        try:
            self._enter(CycleState.DETECTING)
            changeset = self._detector.detect(baseline)
            self._check_cancelled(cancel)

            self._enter(CycleState.SCHEDULING)
            units = self._scheduler.schedule(changeset)

            self._enter(CycleState.EXECUTING)
            outcome = self._scheduler.execute(units, cancel)
            self._check_cancelled(cancel)

            self._enter(CycleState.ATTRIBUTING)
            files = baseline.updated_files(changeset)
            known_units = {unit.unit_id for state in files.values() for unit in state.units.values()}
            table = self._attributor.attribute(baseline.coverage, changeset, outcome.records, known_units)
            self._check_cancelled(cancel)

            candidate = baseline.advance(changeset, table, outcome.failed_to_run)
            self._report.commit(candidate)
            self._enter(CycleState.COMMITTED)
        except CYCLE_ERRORS as exc:
            self._enter(CycleState.FAILED)
            self._log_failure(exc)
            return CycleResult(
                state=CycleState.FAILED,
                snapshot=baseline,
                changeset=changeset,
                outcome=outcome,
                error=exc,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )
        except BaseException:
            self._enter(CycleState.FAILED)
            raise
        finally:
            self._enter(CycleState.IDLE)

        result = CycleResult(
            state=CycleState.COMMITTED,
            snapshot=candidate,
            changeset=changeset,
            outcome=outcome,
            delta=coverage_delta(baseline.coverage, table),
            duration_ms=(time.monotonic() - start_time) * 1000,
        )
        logger.info(
            'Committed %s: ran %d unit(s), %d failed to run, +%d/-%d covered line(s)',
            candidate.revision,
            outcome.dispatched,
            len(outcome.failures),
            len(result.delta.newly_covered),
            len(result.delta.no_longer_covered),
        )
        return result

    def _check_cancelled(self, cancel: threading.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            msg = f'Cycle abandoned during {self._state.value}'
            raise CycleCancelled(msg)

    def _log_failure(self, exc: CovwatchError) -> None:
        if isinstance(exc, AttributionError):
            logger.error('Attribution failed, cycle rolled back: %s', exc, exc_info=exc)
        elif isinstance(exc, CycleCancelled):
            logger.info('%s; the next cycle will redo the work', exc)
        else:
            logger.error('Cycle failed, snapshot left at %s: %s', self._report.revision, exc)
