"""Shared pytest configuration and fixtures for pytest-covwatch tests.

The fakes here stand in for the two external collaborators of a watch cycle:
version control (FakeVCS) and test execution (FakeExecutor). Both are plain
in-memory objects, so small tests never touch git or spawn subprocesses.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import TYPE_CHECKING

import pytest

from pytest_covwatch.detection import ChangeDetector
from pytest_covwatch.discovery import default_registry
from pytest_covwatch.errors import DiffError, ExecutionError
from pytest_covwatch.execution import ExecutionRecord, ExecutionStatus
from pytest_covwatch.parallel import ExecutionScheduler, PoolConfig
from pytest_covwatch.reporting import AggregateReport
from pytest_covwatch.snapshot import Snapshot
from pytest_covwatch.vcs import WORKING_TREE, ChangeKind, FileChange
from pytest_covwatch.watch import WatchCycle


if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from pytest_covwatch.discovery import TestUnit


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line('markers', 'small: Fast, isolated unit tests (< 100ms)')
    config.addinivalue_line('markers', 'medium: Integration tests with real resources (< 10s)')
    config.addinivalue_line('markers', 'large: End-to-end system tests (< 60s)')


class FakeVCS:
    """In-memory VersionControl.

    Commits are plain dicts of path to content. The working tree starts as a
    copy of the initial commit and is edited through ``write``/``delete``.
    """

    def __init__(self, files: Mapping[str, bytes] | None = None) -> None:
        self.commits: dict[str, dict[str, bytes]] = {'c0': dict(files or {})}
        self.head_commit = 'c0'
        self.worktree: dict[str, bytes] = dict(files or {})
        self.renames: dict[str, str] = {}
        self.fail_with: DiffError | None = None
        self.diff_calls = 0

    def write(self, path: str, content: bytes | str) -> None:
        self.worktree[path] = content.encode() if isinstance(content, str) else content

    def delete(self, path: str) -> None:
        del self.worktree[path]

    def rename(self, old: str, new: str) -> None:
        self.worktree[new] = self.worktree.pop(old)
        self.renames[new] = old

    def commit(self) -> str:
        commit_id = f'c{len(self.commits)}'
        self.commits[commit_id] = dict(self.worktree)
        self.head_commit = commit_id
        self.renames.clear()
        return commit_id

    def head(self) -> str:
        return self.head_commit

    def _files(self, revision: str) -> dict[str, bytes]:
        if revision == WORKING_TREE:
            return self.worktree
        if revision not in self.commits:
            msg = f'Unknown revision {revision!r}'
            raise DiffError(msg)
        return self.commits[revision]

    def diff_files(self, baseline: str, current: str = WORKING_TREE) -> set[FileChange]:
        self.diff_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        old = self._files(baseline)
        new = self._files(current)
        changes: set[FileChange] = set()
        rename_sources = set()
        for path, content in new.items():
            source = self.renames.get(path) if current == WORKING_TREE else None
            if source is not None and source in old and source not in new:
                changes.add(FileChange(path, ChangeKind.RENAMED, old_path=source))
                rename_sources.add(source)
            elif path not in old:
                changes.add(FileChange(path, ChangeKind.ADDED))
            elif old[path] != content:
                changes.add(FileChange(path, ChangeKind.MODIFIED))
        for path in old:
            if path not in new and path not in rename_sources:
                changes.add(FileChange(path, ChangeKind.DELETED))
        return changes

    def file_content_at(self, path: str, revision: str) -> bytes | None:
        return self._files(revision).get(path)


class FakeExecutor:
    """Thread-safe TestExecutor returning canned hits per node id.

    Attributes:
        hits: node id to {(path, line): hits}. Units without an entry cover nothing.
        crash: node ids that raise ExecutionError.
        failing: node ids that run but fail.
        calls: node ids in the order they were run.
    """

    __test__ = False

    def __init__(
        self,
        hits: Mapping[str, Mapping[tuple[str, int], int]] | None = None,
        *,
        crash: set[str] | None = None,
        failing: set[str] | None = None,
        on_run: Callable[[TestUnit], None] | None = None,
    ) -> None:
        self.hits = dict(hits or {})
        self.crash = set(crash or ())
        self.failing = set(failing or ())
        self.on_run = on_run
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def run(self, unit: TestUnit) -> ExecutionRecord:
        with self._lock:
            self.calls.append(unit.node_id)
        if self.on_run is not None:
            self.on_run(unit)
        if unit.node_id in self.crash:
            raise ExecutionError(unit.unit_id, 'crashed')
        status = ExecutionStatus.FAILED if unit.node_id in self.failing else ExecutionStatus.PASSED
        return ExecutionRecord(
            unit_id=unit.unit_id,
            status=status,
            hits=MappingProxyType(dict(self.hits.get(unit.node_id, {}))),
        )


class CycleHarness:
    """A WatchCycle wired to fakes, plus the report it commits to."""

    def __init__(self, vcs: FakeVCS, executor: FakeExecutor, max_workers: int = 2) -> None:
        self.vcs = vcs
        self.executor = executor
        self.detector = ChangeDetector(vcs, default_registry())
        self.scheduler = ExecutionScheduler(executor, PoolConfig(max_workers=max_workers, poll_interval=0.01))
        self.report = AggregateReport(Snapshot.initial(vcs.head()))
        self.cycle = WatchCycle(self.detector, self.scheduler, self.report)

    def run(self):
        return self.cycle.run(self.report.snapshot)


@pytest.fixture
def fake_vcs() -> FakeVCS:
    """Empty in-memory repository with a single commit 'c0'."""
    return FakeVCS()


@pytest.fixture
def fake_executor() -> FakeExecutor:
    """Executor that covers nothing until told otherwise."""
    return FakeExecutor()


@pytest.fixture
def make_vcs() -> Callable[..., FakeVCS]:
    """Factory for in-memory repositories with initial committed files."""
    return FakeVCS


@pytest.fixture
def make_executor() -> Callable[..., FakeExecutor]:
    """Factory for fake executors with canned hits."""
    return FakeExecutor


@pytest.fixture
def harness(fake_vcs: FakeVCS, fake_executor: FakeExecutor) -> CycleHarness:
    """WatchCycle wired to the fake repository and executor."""
    return CycleHarness(fake_vcs, fake_executor)


@pytest.fixture
def make_harness() -> Callable[..., CycleHarness]:
    """Factory for harnesses around custom fakes."""
    return CycleHarness
