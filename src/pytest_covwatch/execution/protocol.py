"""Protocol definition for the test-execution collaborator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable


if TYPE_CHECKING:
    from pytest_covwatch.discovery.unit import TestUnit
    from pytest_covwatch.execution.record import ExecutionRecord


@runtime_checkable
class TestExecutor(Protocol):
    """Runs one test unit and reports the lines it executed.

    Implementations must be safe to call from several worker threads at once.
    """

    def run(self, unit: TestUnit) -> ExecutionRecord:
        """Run a unit and return its record.

        Raises:
            ExecutionError: If the unit crashed, could not be collected, or
                timed out.
        """
        ...
