"""CoverageAttributor: merge execution records into the coverage table.

Attribution works on a copy of the committed table, in four steps:

1. Renamed units take their coverage along to their new identity.
2. Stale coverage is cleared: every attribution of a removed unit, a modified
   unit, or a unit that ran again this cycle disappears. Lines left without an
   attributing unit stop counting as covered.
3. Each record adds its unit to every line it hit, summing hit counts. This is
   a union/sum, so the order records arrive in does not matter.
4. The result is checked against the known units; any violation raises
   AttributionError and the cycle is rolled back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pytest_covwatch.errors import AttributionError


if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from pytest_covwatch.coverage.table import CoverageTable
    from pytest_covwatch.detection.changeset import ChangeSet
    from pytest_covwatch.discovery.unit import UnitId
    from pytest_covwatch.execution.record import ExecutionRecord


logger = logging.getLogger(__name__)

_MAX_REPORTED = 10


class CoverageAttributor:
    """Attributes per-run line hits to the test units that produced them."""

    def attribute(
        self,
        table: CoverageTable,
        changeset: ChangeSet,
        records: Iterable[ExecutionRecord],
        known_units: Collection[UnitId],
    ) -> CoverageTable:
        """Return a new table with a cycle's changes and records merged in.

        Args:
            table: The committed table. It is not modified.
            changeset: The cycle's changes (renames, removals, modifications).
            records: Records of the units that ran this cycle.
            known_units: Every unit that exists after the changeset is applied.

        Returns:
            The updated CoverageTable.

        Raises:
            AttributionError: If a record names a unit that was not scheduled,
                two records name the same unit, or an attribution would name a
                unit that no longer exists.
        """
        records = list(records)
        scheduled = {unit.unit_id for unit in changeset.to_run}
        self._check_records(records, scheduled)

        updated = table.copy()

        for old, new in changeset.renamed.items():
            updated.rename_unit(old, new)

        stale = set(changeset.invalidated) | {record.unit_id for record in records}
        cleared = sum(updated.clear_unit(unit_id) for unit_id in stale)
        if cleared:
            logger.debug('Cleared %d stale attribution(s) from %d unit(s)', cleared, len(stale))

        for record in records:
            for (path, line), hits in record.hits.items():
                updated.add(path, line, record.unit_id, hits)

        self._check_known(updated, known_units)
        updated.check_consistency()
        return updated

    def _check_records(self, records: list[ExecutionRecord], scheduled: set[UnitId]) -> None:
        seen: set[UnitId] = set()
        for record in records:
            if record.unit_id not in scheduled:
                msg = f'Execution record for {record.unit_id}, which was not scheduled this cycle'
                raise AttributionError(msg)
            if record.unit_id in seen:
                msg = f'Duplicate execution record for {record.unit_id}'
                raise AttributionError(msg)
            seen.add(record.unit_id)

    def _check_known(self, table: CoverageTable, known_units: Collection[UnitId]) -> None:
        unknown = sorted(table.units() - set(known_units))
        if not unknown:
            return
        shown = ', '.join(str(unit_id) for unit_id in unknown[:_MAX_REPORTED])
        more = f' (+{len(unknown) - _MAX_REPORTED} more)' if len(unknown) > _MAX_REPORTED else ''
        msg = f'Coverage attributed to {len(unknown)} unit(s) that no longer exist: {shown}{more}'
        raise AttributionError(msg)
