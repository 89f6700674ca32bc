"""AggregateReport: the committed, queryable coverage state.

Readers always see the last committed snapshot. A cycle builds its new
snapshot off to the side and hands it to ``commit``, which swaps it in under a
lock, so a query never observes a partially merged changeset.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from types import MappingProxyType
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Mapping

    from pytest_covwatch.coverage.table import CoverageEntry, CoverageTable, Location
    from pytest_covwatch.discovery.unit import UnitId
    from pytest_covwatch.snapshot.models import Revision, Snapshot
    from pytest_covwatch.snapshot.store import SnapshotStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoverageDelta:
    """Difference in covered lines between two tables.

    Attributes:
        newly_covered: Lines covered after but not before.
        no_longer_covered: Lines covered before but not after.
    """

    newly_covered: frozenset[Location] = frozenset()
    no_longer_covered: frozenset[Location] = frozenset()

    @property
    def is_empty(self) -> bool:
        """Return True if the set of covered lines did not change."""
        return not (self.newly_covered or self.no_longer_covered)

    def by_file(self) -> dict[str, tuple[int, int]]:
        """Return {path: (lines gained, lines lost)}."""
        counts: dict[str, tuple[int, int]] = {}
        for path, _ in self.newly_covered:
            gained, lost = counts.get(path, (0, 0))
            counts[path] = (gained + 1, lost)
        for path, _ in self.no_longer_covered:
            gained, lost = counts.get(path, (0, 0))
            counts[path] = (gained, lost + 1)
        return dict(sorted(counts.items()))


def coverage_delta(before: CoverageTable, after: CoverageTable) -> CoverageDelta:
    """Compute which lines a cycle started or stopped covering."""
    before_lines = set(before.locations())
    after_lines = set(after.locations())
    return CoverageDelta(
        newly_covered=frozenset(after_lines - before_lines),
        no_longer_covered=frozenset(before_lines - after_lines),
    )


@dataclass(frozen=True)
class FileSummary:
    """Covered-line totals for one source file.

    Attributes:
        path: Source file path.
        covered_lines: Number of lines with at least one attributing unit.
        hits: Total hits over all covered lines.
        units: Number of distinct units covering the file.
    """

    path: str
    covered_lines: int
    hits: int
    units: int


class AggregateReport:
    """Read-only access to the last committed snapshot, plus the commit step.

    Attributes:
        store: Optional durable store written on every commit.

    Example:
        >>> report = AggregateReport(Snapshot.initial('abc123'))
        >>> dict(report.query())
        {}
    """

    def __init__(self, snapshot: Snapshot, store: SnapshotStore | None = None) -> None:
        """Create a report whose committed state is ``snapshot``."""
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self.store = store

    @property
    def snapshot(self) -> Snapshot:
        """Return the last committed snapshot."""
        with self._lock:
            return self._snapshot

    @property
    def revision(self) -> Revision:
        """Return the last committed revision."""
        return self.snapshot.revision

    def query(self, file_filter: str | None = None) -> Mapping[Location, CoverageEntry]:
        """Return a read-only view of the committed coverage table.

        Args:
            file_filter: Optional fnmatch pattern restricting source paths.

        Returns:
            Mapping of (path, line) to CoverageEntry.
        """
        table = self.snapshot.coverage
        return MappingProxyType({entry.location: entry for entry in table.entries(file_filter)})

    def covered_by(self, unit_id: UnitId) -> frozenset[Location]:
        """Return the committed lines attributed to one unit."""
        return frozenset(self.snapshot.coverage.covered_by(unit_id))

    def summary(self, file_filter: str | None = None) -> list[FileSummary]:
        """Return per-file totals of the committed table, sorted by path."""
        lines: dict[str, int] = {}
        hits: dict[str, int] = {}
        units: dict[str, set[UnitId]] = {}
        for entry in self.snapshot.coverage.entries(file_filter):
            lines[entry.path] = lines.get(entry.path, 0) + 1
            hits[entry.path] = hits.get(entry.path, 0) + entry.hits
            units.setdefault(entry.path, set()).update(entry.attributors)
        return [FileSummary(path, lines[path], hits[path], len(units[path])) for path in sorted(lines)]

    def commit(self, snapshot: Snapshot) -> None:
        """Make ``snapshot`` the committed state.

        The snapshot is persisted first (when a store is attached) and only
        then swapped in, so a failed write leaves the previous commit in place.

        Raises:
            ValueError: If the snapshot's revision is not later than the
                committed one.
            StoreError: If persisting the snapshot failed.
        """
        with self._lock:
            current = self._snapshot.revision
            if not snapshot.revision.is_after(current):
                msg = f'Revision {snapshot.revision} does not advance past {current}'
                raise ValueError(msg)
            if self.store is not None:
                self.store.save(snapshot)
            self._snapshot = snapshot
        logger.debug('Committed revision %s', snapshot.revision)
