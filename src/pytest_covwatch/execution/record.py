"""ExecutionRecord dataclass for the outcome of running one test unit.

Each ExecutionRecord holds the pass/fail status of a single run and the
per-line hit counts it produced. Records are owned by the coverage attributor
during the merge and discarded afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Mapping

    from pytest_covwatch.discovery.unit import UnitId


class ExecutionStatus(Enum):
    """Status of a test unit that ran to completion.

    Attributes:
        PASSED: The test passed.
        FAILED: The test ran and failed; its coverage still counts.
    """

    PASSED = 'passed'
    FAILED = 'failed'


@dataclass(frozen=True)
class ExecutionRecord:
    """Result of running a single test unit once.

    Attributes:
        unit_id: The unit that ran.
        status: Whether the test passed.
        hits: (source path, line) to hit count for this run.
        duration_ms: Wall time of the run in milliseconds.
    """

    unit_id: UnitId
    status: ExecutionStatus
    hits: Mapping[tuple[str, int], int] = field(default_factory=lambda: MappingProxyType({}))
    duration_ms: float | None = None

    @property
    def passed(self) -> bool:
        """Return True if the test passed."""
        return self.status == ExecutionStatus.PASSED

    @property
    def covered_lines(self) -> set[tuple[str, int]]:
        """Return the locations with a positive hit count."""
        return {location for location, count in self.hits.items() if count > 0}
