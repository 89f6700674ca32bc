"""Exception hierarchy for pytest-covwatch.

Errors are split by the scope they abort:

- Cycle scoped (DiffError, AttributionError, CycleCancelled, StoreError):
  the whole watch cycle is rolled back and the snapshot stays where it was.
- File scoped (DiscoveryError): the file is skipped for this cycle.
- Unit scoped (ExecutionError): the test unit is marked failed-to-run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from pytest_covwatch.discovery.unit import UnitId


class CovwatchError(Exception):
    """Base class for all pytest-covwatch errors."""


class DiffError(CovwatchError):
    """The working tree could not be compared against the baseline revision."""


class DiscoveryError(CovwatchError):
    """Test units could not be discovered in a file.

    Attributes:
        path: Repository-relative path of the file.
        reason: Short description of the failure.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f'{path}: {reason}')
        self.path = path
        self.reason = reason


class ExecutionError(CovwatchError):
    """A test unit crashed or timed out and produced no usable record.

    Attributes:
        unit_id: The unit that failed to run.
        reason: Short description of the failure.
        timed_out: True when the run exceeded its timeout.
    """

    def __init__(self, unit_id: UnitId, reason: str, *, timed_out: bool = False) -> None:
        super().__init__(f'{unit_id}: {reason}')
        self.unit_id = unit_id
        self.reason = reason
        self.timed_out = timed_out


class AttributionError(CovwatchError):
    """The coverage table would violate one of its invariants."""


class StoreError(CovwatchError):
    """The snapshot could not be persisted."""


class CycleCancelled(CovwatchError):
    """The watch cycle was abandoned before it could commit."""
