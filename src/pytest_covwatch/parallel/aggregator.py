"""Result aggregation for parallel test-unit execution.

This module provides the ExecutionAggregator class that collects records and
failures from worker threads as they complete, in whatever order they arrive.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from pytest_covwatch.errors import ExecutionError
from pytest_covwatch.execution.record import ExecutionStatus


if TYPE_CHECKING:
    from pytest_covwatch.discovery.unit import UnitId
    from pytest_covwatch.execution.record import ExecutionRecord


class ExecutionAggregator:
    """Aggregates execution results from parallel workers.

    Thread-safe collection of records and failed-to-run errors with progress
    tracking. Results can be retrieved sorted by unit id.

    Attributes:
        total_units: Total number of units being executed.
        completed: Number of units that have finished, either way.

    Example:
        >>> aggregator = ExecutionAggregator(total_units=2)
        >>> aggregator.get_progress()
        (0, 2)
    """

    def __init__(self, total_units: int) -> None:
        """Initialize the aggregator.

        Args:
            total_units: Total number of units to be executed.
        """
        self._total_units = total_units
        self._records: list[ExecutionRecord] = []
        self._failures: list[ExecutionError] = []
        self._lock = threading.Lock()
        self._passed = 0
        self._failed = 0

    @property
    def total_units(self) -> int:
        """Return the total number of units."""
        return self._total_units

    @property
    def completed(self) -> int:
        """Return the number of units that finished."""
        with self._lock:
            return len(self._records) + len(self._failures)

    @property
    def passed_count(self) -> int:
        """Return the number of units that passed."""
        with self._lock:
            return self._passed

    @property
    def failed_count(self) -> int:
        """Return the number of units that ran and failed."""
        with self._lock:
            return self._failed

    @property
    def error_count(self) -> int:
        """Return the number of units that failed to run."""
        with self._lock:
            return len(self._failures)

    @property
    def progress_percentage(self) -> float:
        """Return progress as a percentage from 0.0 to 100.0."""
        if self._total_units == 0:
            return 0.0
        with self._lock:
            return ((len(self._records) + len(self._failures)) / self._total_units) * 100

    def add_record(self, record: ExecutionRecord) -> None:
        """Add a completed record. Thread-safe."""
        with self._lock:
            self._records.append(record)
            if record.status == ExecutionStatus.PASSED:
                self._passed += 1
            else:
                self._failed += 1

    def add_failure(self, error: ExecutionError) -> None:
        """Record a unit that failed to run. Thread-safe."""
        with self._lock:
            self._failures.append(error)

    def add_error(self, unit_id: UnitId, error: Exception) -> None:
        """Record an unexpected exception from the collaborator as a failure to run."""
        self.add_failure(ExecutionError(unit_id, f'{type(error).__name__}: {error}'))

    def get_records(self) -> list[ExecutionRecord]:
        """Return all records sorted by unit id."""
        with self._lock:
            return sorted(self._records, key=lambda r: r.unit_id)

    def get_failures(self) -> list[ExecutionError]:
        """Return all failures sorted by unit id."""
        with self._lock:
            return sorted(self._failures, key=lambda e: e.unit_id)

    def get_progress(self) -> tuple[int, int]:
        """Get progress as (completed, total)."""
        with self._lock:
            return (len(self._records) + len(self._failures), self._total_units)
