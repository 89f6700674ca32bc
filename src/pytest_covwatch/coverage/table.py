"""CoverageTable mapping source lines to the test units that cover them.

The CoverageTable is the accumulated coverage state. Every (file, line) that
some live test unit executed has an entry recording each attributing unit and
the hits it contributed. Keeping contributions per unit makes clearing a
unit's attribution exact, so re-running a test never double counts.

Example:
    >>> from pytest_covwatch.discovery.unit import UnitId
    >>> table = CoverageTable()
    >>> table.add('src/calc.py', 10, UnitId('tests/test_calc.py', 'test_add'))
    >>> table.hits('src/calc.py', 10)
    1
"""

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from types import MappingProxyType
from typing import TYPE_CHECKING

from pytest_covwatch.errors import AttributionError


if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from pytest_covwatch.discovery.unit import UnitId


Location = tuple[str, int]


@dataclass(frozen=True)
class CoverageEntry:
    """Read-only view of the coverage of one source line.

    Attributes:
        path: Source file path.
        line: Line number in the source file.
        hits_by_unit: Hits contributed by each attributing unit.
    """

    path: str
    line: int
    hits_by_unit: Mapping[UnitId, int]

    @property
    def attributors(self) -> frozenset[UnitId]:
        """Return the units that cover this line."""
        return frozenset(self.hits_by_unit)

    @property
    def hits(self) -> int:
        """Return the total hit count over all attributing units."""
        return sum(self.hits_by_unit.values())

    @property
    def location(self) -> Location:
        """Return (path, line)."""
        return self.path, self.line


class CoverageTable:
    """Maps source locations (file, line) to the units that executed them.

    Attributes:
        _data: Location to {unit: hits}.
        _by_unit: Reverse index from unit to the locations it covers.
    """

    def __init__(self) -> None:
        """Create an empty coverage table."""
        self._data: dict[Location, dict[UnitId, int]] = {}
        self._by_unit: dict[UnitId, set[Location]] = {}

    def __len__(self) -> int:
        """Return the number of covered source locations."""
        return len(self._data)

    def __contains__(self, location: object) -> bool:
        """Check if a (file_path, line_number) tuple has any attribution."""
        return location in self._data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CoverageTable):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f'CoverageTable(locations={len(self._data)}, units={len(self._by_unit)})'

    def add(self, file_path: str, line_number: int, unit_id: UnitId, hits: int = 1) -> None:
        """Attribute hits on a source line to a unit.

        Non-positive hit counts are ignored; a line only counts as covered
        when it was actually executed.

        Args:
            file_path: Path to the source file.
            line_number: Line number in the source file.
            unit_id: The unit that executed the line.
            hits: Number of hits to add.
        """
        if hits <= 0:
            return
        location = (file_path, line_number)
        per_unit = self._data.setdefault(location, {})
        per_unit[unit_id] = per_unit.get(unit_id, 0) + hits
        self._by_unit.setdefault(unit_id, set()).add(location)

    def get(self, file_path: str, line_number: int) -> CoverageEntry | None:
        """Return the entry for a source line, or None if nothing covers it."""
        per_unit = self._data.get((file_path, line_number))
        if per_unit is None:
            return None
        return CoverageEntry(file_path, line_number, MappingProxyType(dict(per_unit)))

    def attributors(self, file_path: str, line_number: int) -> set[UnitId]:
        """Get the set of units that cover a source location.

        Returns:
            A set of unit ids. Empty if no unit covers this location.
        """
        return set(self._data.get((file_path, line_number), ()))

    def hits(self, file_path: str, line_number: int) -> int:
        """Return the total hit count for a source location."""
        return sum(self._data.get((file_path, line_number), {}).values())

    def locations(self) -> Iterator[Location]:
        """Iterate over covered source locations in sorted order."""
        yield from sorted(self._data)

    def entries(self, file_filter: str | None = None) -> Iterator[CoverageEntry]:
        """Iterate over entries, optionally restricted to paths matching an fnmatch pattern."""
        for location in self.locations():
            path, line = location
            if file_filter is not None and not fnmatchcase(path, file_filter):
                continue
            yield CoverageEntry(path, line, MappingProxyType(dict(self._data[location])))

    def files(self) -> set[str]:
        """Return every source file with at least one covered line."""
        return {path for path, _ in self._data}

    def units(self) -> set[UnitId]:
        """Return every unit that currently attributes coverage."""
        return set(self._by_unit)

    def covered_by(self, unit_id: UnitId) -> set[Location]:
        """Return the locations a unit is attributed with."""
        return set(self._by_unit.get(unit_id, ()))

    def clear_unit(self, unit_id: UnitId) -> int:
        """Remove every attribution naming a unit.

        Entries left with no attributing unit are dropped, so the line no
        longer counts as covered.

        Returns:
            Number of locations the unit was removed from.
        """
        locations = self._by_unit.pop(unit_id, set())
        for location in locations:
            per_unit = self._data[location]
            del per_unit[unit_id]
            if not per_unit:
                del self._data[location]
        return len(locations)

    def rename_unit(self, old: UnitId, new: UnitId) -> None:
        """Move every attribution from one unit identity to another.

        Hits already attributed to ``new`` are kept and summed.
        """
        if old == new:
            return
        for location in self._by_unit.pop(old, set()):
            per_unit = self._data[location]
            hits = per_unit.pop(old)
            per_unit[new] = per_unit.get(new, 0) + hits
            self._by_unit.setdefault(new, set()).add(location)

    def copy(self) -> CoverageTable:
        """Return an independent copy of this table."""
        clone = CoverageTable()
        clone._data = {location: dict(per_unit) for location, per_unit in self._data.items()}
        clone._by_unit = {unit: set(locations) for unit, locations in self._by_unit.items()}
        return clone

    def check_consistency(self) -> None:
        """Verify the forward and reverse indexes agree.

        Raises:
            AttributionError: If an entry is empty, holds a non-positive hit
                count, or disagrees with the reverse index.
        """
        reverse: dict[UnitId, set[Location]] = {}
        for location, per_unit in self._data.items():
            if not per_unit:
                msg = f'Empty coverage entry at {location[0]}:{location[1]}'
                raise AttributionError(msg)
            for unit_id, hits in per_unit.items():
                if hits <= 0:
                    msg = f'Non-positive hit count {hits} for {unit_id} at {location[0]}:{location[1]}'
                    raise AttributionError(msg)
                reverse.setdefault(unit_id, set()).add(location)
        if reverse != self._by_unit:
            drift = sorted(str(unit) for unit in set(reverse) ^ set(self._by_unit))
            msg = f'Coverage reverse index out of sync (units: {drift or "same set, different lines"})'
            raise AttributionError(msg)
