"""Revision, FileState and Snapshot values.

A Snapshot is the durable state carried from one watch cycle to the next: the
last processed revision, the cached test-unit map per file, and the coverage
table. Snapshots are immutable values; a cycle receives one and returns either
the same object (failure) or a new one (success).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from pytest_covwatch.coverage.table import CoverageTable
from pytest_covwatch.snapshot.hasher import EMPTY_DIGEST


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from pytest_covwatch.detection.changeset import ChangeSet
    from pytest_covwatch.discovery.unit import TestUnit, UnitId


@dataclass(frozen=True)
class Revision:
    """Opaque identifier of a processed version-control state.

    Attributes:
        commit: The HEAD commit the working tree was compared against.
        worktree_digest: Digest of the uncommitted changes on top of ``commit``.
        sequence: Cycle ordinal; revisions are ordered by it.
    """

    commit: str
    worktree_digest: str = EMPTY_DIGEST
    sequence: int = 0

    def is_after(self, other: Revision) -> bool:
        """Return True if this revision was observed strictly later than ``other``."""
        return self.sequence > other.sequence

    def __str__(self) -> str:
        return f'{self.commit[:12]}+{self.worktree_digest[:8]}#{self.sequence}'


@dataclass(frozen=True)
class FileState:
    """Cached state of one file as of the snapshot's revision.

    Attributes:
        content_hash: SHA-256 of the file content.
        units: Test units defined in the file, keyed by name. Empty for
            non-test source files.
    """

    content_hash: str
    units: Mapping[str, TestUnit] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class Snapshot:
    """Durable state carried between watch cycles.

    Attributes:
        revision: Last committed revision.
        files: Cached FileState per repository-relative path.
        coverage: Coverage table as of ``revision``. Never mutated once the
            snapshot is built.
        pending_paths: Paths that differed from ``revision.commit`` when the
            snapshot was taken; they are re-checked next cycle even if the
            diff no longer reports them (e.g. after a revert).
        retry_units: Units that failed to run in the committed cycle; they
            are scheduled again next cycle even if their source is unchanged.
    """

    revision: Revision
    files: Mapping[str, FileState] = field(default_factory=lambda: MappingProxyType({}))
    coverage: CoverageTable = field(default_factory=CoverageTable)
    pending_paths: frozenset[str] = frozenset()
    retry_units: frozenset[UnitId] = frozenset()

    @classmethod
    def initial(cls, commit: str) -> Snapshot:
        """Create the empty snapshot a fresh checkout starts from."""
        return cls(revision=Revision(commit=commit))

    @property
    def units(self) -> dict[UnitId, TestUnit]:
        """Return every known test unit keyed by identity."""
        return {unit.unit_id: unit for state in self.files.values() for unit in state.units.values()}

    def updated_files(self, changeset: ChangeSet) -> dict[str, FileState]:
        """Return the file map with a changeset's updates applied."""
        files = dict(self.files)
        for path, state in changeset.files.items():
            if state is None:
                files.pop(path, None)
            else:
                files[path] = state
        return files

    def advance(
        self,
        changeset: ChangeSet,
        coverage: CoverageTable,
        failed_to_run: Iterable[UnitId] = (),
    ) -> Snapshot:
        """Build the snapshot that results from committing a changeset.

        Args:
            changeset: The detected changes, carrying the target revision.
            coverage: The attributed coverage table for the new revision.
            failed_to_run: Units that produced no record this cycle. The ones
                that still exist are retried next cycle.

        Returns:
            A new Snapshot. ``self`` is left untouched.
        """
        files = self.updated_files(changeset)
        live = {unit.unit_id for state in files.values() for unit in state.units.values()}
        return Snapshot(
            revision=changeset.revision,
            files=MappingProxyType(files),
            coverage=coverage,
            pending_paths=changeset.pending_paths,
            retry_units=frozenset(unit_id for unit_id in failed_to_run if unit_id in live),
        )
