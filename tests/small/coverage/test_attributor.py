"""Tests for merging execution records into the coverage table."""

from __future__ import annotations

import itertools
from types import MappingProxyType

import pytest

from pytest_covwatch.coverage.attributor import CoverageAttributor
from pytest_covwatch.coverage.table import CoverageTable
from pytest_covwatch.detection.changeset import ChangeSet
from pytest_covwatch.discovery.unit import TestUnit, UnitId
from pytest_covwatch.errors import AttributionError
from pytest_covwatch.execution.record import ExecutionRecord, ExecutionStatus
from pytest_covwatch.snapshot.models import Revision


def unit(name: str, path: str = 'tests/test_a.py', content_hash: str = 'h') -> TestUnit:
    return TestUnit(path, name, 1, 2, content_hash)


def record(test_unit: TestUnit, hits: dict[tuple[str, int], int]) -> ExecutionRecord:
    return ExecutionRecord(test_unit.unit_id, ExecutionStatus.PASSED, MappingProxyType(hits))


def changeset(**kwargs) -> ChangeSet:
    return ChangeSet(revision=Revision('c0', sequence=1), **kwargs)


@pytest.mark.small
class TestAttribute:
    """Tests for CoverageAttributor.attribute."""

    def test_added_units_attribute_their_hits(self):
        test_a = unit('test_a')

        table = CoverageAttributor().attribute(
            CoverageTable(),
            changeset(added=frozenset({test_a})),
            [record(test_a, {('src/a.py', 1): 1, ('src/a.py', 2): 1})],
            {test_a.unit_id},
        )

        assert table.covered_by(test_a.unit_id) == {('src/a.py', 1), ('src/a.py', 2)}

    def test_shared_line_sums_hits_from_both_units(self):
        test_x = unit('test_x')
        test_y = unit('test_y')

        table = CoverageAttributor().attribute(
            CoverageTable(),
            changeset(added=frozenset({test_x, test_y})),
            [record(test_x, {('b.src', 5): 2}), record(test_y, {('b.src', 5): 3})],
            {test_x.unit_id, test_y.unit_id},
        )

        entry = table.get('b.src', 5)
        assert entry is not None
        assert entry.attributors == frozenset({test_x.unit_id, test_y.unit_id})
        assert entry.hits == 5

    def test_merge_is_independent_of_record_order(self):
        units = [unit(f'test_{i}') for i in range(4)]
        records = [
            record(units[0], {('a.py', 1): 1, ('a.py', 2): 1}),
            record(units[1], {('a.py', 2): 2}),
            record(units[2], {('b.py', 7): 1}),
            record(units[3], {('a.py', 1): 4, ('b.py', 7): 1}),
        ]
        base = CoverageTable()
        base.add('a.py', 9, UnitId('tests/test_old.py', 'test_old'))
        known = {u.unit_id for u in units} | {UnitId('tests/test_old.py', 'test_old')}
        change = changeset(added=frozenset(units))

        results = [
            CoverageAttributor().attribute(base, change, list(order), known)
            for order in itertools.permutations(records)
        ]

        assert all(result == results[0] for result in results)

    def test_modified_unit_replaces_its_old_coverage(self):
        test_add = unit('test_add', content_hash='v2')
        base = CoverageTable()
        for line in (10, 11, 12):
            base.add('src/math.py', line, test_add.unit_id)

        table = CoverageAttributor().attribute(
            base,
            changeset(modified=frozenset({test_add})),
            [record(test_add, {('src/math.py', 10): 1})],
            {test_add.unit_id},
        )

        assert list(table.locations()) == [('src/math.py', 10)]
        assert table.hits('src/math.py', 10) == 1

    def test_removed_unit_is_pruned_without_running(self):
        gone = UnitId('tests/test_a.py', 'test_gone')
        kept = UnitId('tests/test_a.py', 'test_kept')
        base = CoverageTable()
        base.add('src/a.py', 1, gone)
        base.add('src/a.py', 2, gone)
        base.add('src/a.py', 2, kept)

        table = CoverageAttributor().attribute(base, changeset(removed=frozenset({gone})), [], {kept})

        assert gone not in table.units()
        assert ('src/a.py', 1) not in table
        assert table.attributors('src/a.py', 2) == {kept}

    def test_renamed_unit_keeps_coverage_under_new_id(self):
        old = UnitId('tests/test_old.py', 'test_x')
        new = UnitId('tests/test_new.py', 'test_x')
        base = CoverageTable()
        base.add('src/a.py', 3, old)

        table = CoverageAttributor().attribute(
            base, changeset(renamed=MappingProxyType({old: new})), [], {new}
        )

        assert table.attributors('src/a.py', 3) == {new}

    def test_input_table_is_not_modified(self):
        test_a = unit('test_a')
        base = CoverageTable()
        base.add('src/a.py', 1, test_a.unit_id)
        snapshot_of_base = base.copy()

        CoverageAttributor().attribute(
            base,
            changeset(modified=frozenset({test_a})),
            [record(test_a, {('src/a.py', 2): 1})],
            {test_a.unit_id},
        )

        assert base == snapshot_of_base

    def test_unscheduled_record_is_rejected(self):
        stray = unit('test_stray')

        with pytest.raises(AttributionError, match='not scheduled'):
            CoverageAttributor().attribute(CoverageTable(), changeset(), [record(stray, {('a.py', 1): 1})], set())

    def test_duplicate_record_is_rejected(self):
        test_a = unit('test_a')

        with pytest.raises(AttributionError, match='Duplicate'):
            CoverageAttributor().attribute(
                CoverageTable(),
                changeset(added=frozenset({test_a})),
                [record(test_a, {('a.py', 1): 1}), record(test_a, {('a.py', 2): 1})],
                {test_a.unit_id},
            )

    def test_attribution_to_unknown_unit_is_rejected(self):
        orphan = UnitId('tests/test_a.py', 'test_orphan')
        base = CoverageTable()
        base.add('src/a.py', 1, orphan)

        with pytest.raises(AttributionError, match='no longer exist'):
            CoverageAttributor().attribute(base, changeset(), [], set())
