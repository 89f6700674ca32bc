"""Tests for ExecutionScheduler: selection and parallel dispatch."""

from __future__ import annotations

import threading

import pytest

from pytest_covwatch.detection.changeset import ChangeSet
from pytest_covwatch.discovery.unit import TestUnit, UnitId
from pytest_covwatch.errors import CycleCancelled
from pytest_covwatch.parallel.pool_config import PoolConfig
from pytest_covwatch.parallel.scheduler import ExecutionOutcome, ExecutionScheduler
from pytest_covwatch.snapshot.models import Revision


def unit(name: str, path: str = 'tests/test_a.py') -> TestUnit:
    return TestUnit(path, name, 1, 2, f'h-{name}')


def scheduler_for(executor, **kwargs) -> ExecutionScheduler:
    return ExecutionScheduler(executor, PoolConfig(max_workers=2, poll_interval=0.01), **kwargs)


@pytest.mark.small
class TestSchedule:
    """Tests for picking the units to run."""

    def test_only_added_and_modified_units_are_scheduled(self, fake_executor):
        added = unit('test_new')
        modified = unit('test_changed')
        changeset = ChangeSet(
            Revision('c0', sequence=1),
            added=frozenset({added}),
            modified=frozenset({modified}),
            removed=frozenset({UnitId('tests/test_a.py', 'test_gone')}),
        )

        scheduled = scheduler_for(fake_executor).schedule(changeset)

        assert scheduled == [modified, added]

    def test_schedule_is_sorted_by_node_id(self, fake_executor):
        units = frozenset({unit('test_b', 'tests/b.py'), unit('test_a', 'tests/b.py'), unit('test_z', 'tests/a.py')})

        scheduled = scheduler_for(fake_executor).schedule(ChangeSet(Revision('c0', sequence=1), added=units))

        assert [u.node_id for u in scheduled] == ['tests/a.py::test_z', 'tests/b.py::test_a', 'tests/b.py::test_b']


@pytest.mark.small
class TestExecute:
    """Tests for running the scheduled units."""

    def test_empty_batch_runs_nothing(self, fake_executor):
        outcome = scheduler_for(fake_executor).execute([])

        assert outcome == ExecutionOutcome()
        assert fake_executor.calls == []

    def test_dispatches_exactly_the_scheduled_units(self, fake_executor):
        units = [unit(f'test_{i}') for i in range(5)]

        outcome = scheduler_for(fake_executor).execute(units)

        assert sorted(fake_executor.calls) == sorted(u.node_id for u in units)
        assert outcome.dispatched == 5
        assert [r.unit_id for r in outcome.records] == sorted(u.unit_id for u in units)

    def test_crashing_unit_is_contained(self, make_executor):
        executor = make_executor(crash={'tests/test_a.py::test_bad'})
        units = [unit('test_bad'), unit('test_good')]

        outcome = scheduler_for(executor).execute(units)

        assert [r.unit_id.name for r in outcome.records] == ['test_good']
        assert outcome.failed_to_run == frozenset({UnitId('tests/test_a.py', 'test_bad')})

    def test_unexpected_exception_becomes_failure(self, make_executor):
        def explode(test_unit: TestUnit) -> None:
            if test_unit.name == 'test_bad':
                raise RuntimeError('boom')

        executor = make_executor(on_run=explode)

        outcome = scheduler_for(executor).execute([unit('test_bad'), unit('test_good')])

        assert len(outcome.records) == 1
        assert 'RuntimeError: boom' in outcome.failures[0].reason

    def test_progress_is_reported(self, fake_executor):
        progress: list[tuple[int, int]] = []

        scheduler_for(fake_executor, on_progress=lambda done, total: progress.append((done, total))).execute(
            [unit('test_a'), unit('test_b')]
        )

        assert sorted(progress) == [(1, 2), (2, 2)]

    def test_cancel_abandons_the_batch(self, make_executor):
        cancel = threading.Event()

        def cancel_on_first_run(_unit: TestUnit) -> None:
            cancel.set()

        executor = make_executor(on_run=cancel_on_first_run)
        units = [unit(f'test_{i}') for i in range(6)]

        with pytest.raises(CycleCancelled, match='abandoned'):
            scheduler_for(executor).execute(units, cancel)

        # Only units already running when the cancel arrived reached the executor.
        assert 1 <= len(executor.calls) <= 2

    def test_cancel_set_before_execute_dispatches_nothing(self, fake_executor):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(CycleCancelled):
            scheduler_for(fake_executor).execute([unit('test_a'), unit('test_b')], cancel)

        assert fake_executor.calls == []

    def test_run_combines_schedule_and_execute(self, fake_executor):
        changeset = ChangeSet(Revision('c0', sequence=1), added=frozenset({unit('test_a')}))

        outcome = scheduler_for(fake_executor).run(changeset)

        assert outcome.dispatched == 1
