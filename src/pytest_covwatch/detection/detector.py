"""Change detection between the last snapshot and the working tree.

The ChangeDetector asks version control which files differ from the snapshot's
baseline commit, re-discovers test units only in files whose content hash
moved, and classifies every discrepancy against the snapshot's cached unit map
as added, modified, removed or renamed.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from pytest_covwatch.config import DEFAULT_INCLUDE
from pytest_covwatch.detection.changeset import ChangeSet
from pytest_covwatch.errors import DiscoveryError
from pytest_covwatch.snapshot.hasher import ContentHasher
from pytest_covwatch.snapshot.models import FileState, Revision
from pytest_covwatch.vcs.protocol import WORKING_TREE, ChangeKind, FileChange


if TYPE_CHECKING:
    from collections.abc import Iterable

    from pytest_covwatch.discovery.registry import DiscovererRegistry
    from pytest_covwatch.discovery.unit import TestUnit, UnitId
    from pytest_covwatch.snapshot.models import Snapshot
    from pytest_covwatch.vcs.protocol import VersionControl


logger = logging.getLogger(__name__)

ABSENT = ''
"""Content hash recorded for a path that no longer exists in the working tree."""


class _Collected:
    """Mutable accumulator for one detect() call."""

    def __init__(self) -> None:
        self.added: set[TestUnit] = set()
        self.modified: set[TestUnit] = set()
        self.removed: set[UnitId] = set()
        self.renamed: dict[UnitId, UnitId] = {}
        self.source_files: set[str] = set()
        self.files: dict[str, FileState | None] = {}
        self.errors: list[DiscoveryError] = []
        self.skipped: set[str] = set()


class ChangeDetector:
    """Computes the ChangeSet for a watch cycle.

    Attributes:
        include: fnmatch patterns of paths to consider.
        exclude: fnmatch patterns of paths to ignore.
    """

    def __init__(
        self,
        vcs: VersionControl,
        registry: DiscovererRegistry,
        *,
        include: Iterable[str] | None = None,
        exclude: Iterable[str] | None = None,
        hasher: ContentHasher | None = None,
    ) -> None:
        self._vcs = vcs
        self._registry = registry
        self.include = tuple(include) if include is not None else tuple(DEFAULT_INCLUDE)
        self.exclude = tuple(exclude) if exclude is not None else ()
        self._hasher = hasher or ContentHasher()

    def is_watched(self, path: str) -> bool:
        """Return True if a path passes the include and exclude patterns."""
        if any(fnmatchcase(path, pattern) for pattern in self.exclude):
            return False
        return any(fnmatchcase(path, pattern) for pattern in self.include)

    def detect(self, snapshot: Snapshot, current: str = WORKING_TREE) -> ChangeSet:
        """Diff ``current`` against the snapshot's revision and cached unit map.

        Args:
            snapshot: The last committed snapshot; its revision is the baseline.
            current: Revision to compare, usually the working tree.

        Returns:
            The ChangeSet, carrying the revision it would commit.

        Raises:
            DiffError: If the working tree cannot be compared to the baseline.
        """
        baseline = snapshot.revision
        commit = self._vcs.head() if current == WORKING_TREE else current
        raw_changes = self._vcs.diff_files(baseline.commit, current)

        candidates = self._candidates(raw_changes, snapshot)
        collected = _Collected()
        for path in sorted(candidates):
            self._process(candidates[path], snapshot, current, collected)

        if commit == baseline.commit:
            dirty = {change.path for change in raw_changes}
        else:
            dirty = {change.path for change in self._vcs.diff_files(commit, current)}
        pending = frozenset(path for path in dirty if self.is_watched(path)) | frozenset(collected.skipped)

        # Tombstones of deletions that are no longer pending (e.g. committed) are dropped.
        for path, state in snapshot.files.items():
            if state.content_hash == ABSENT and path not in pending and path not in collected.files:
                collected.files[path] = None

        revision = Revision(
            commit=commit,
            worktree_digest=self._digest(pending, snapshot, collected.files),
            sequence=baseline.sequence + 1,
        )
        changeset = ChangeSet(
            revision=revision,
            added=frozenset(collected.added),
            modified=frozenset(collected.modified),
            removed=frozenset(collected.removed),
            renamed=MappingProxyType(dict(collected.renamed)),
            source_files=frozenset(collected.source_files),
            files=MappingProxyType(dict(collected.files)),
            pending_paths=pending,
            errors=tuple(collected.errors),
            retried=frozenset(self._retried(snapshot, collected)),
        )
        logger.info('Detected changes since %s: %s', baseline, changeset.describe())
        return changeset

    def _candidates(self, raw_changes: set[FileChange], snapshot: Snapshot) -> dict[str, FileChange]:
        candidates: dict[str, FileChange] = {}
        rename_sources: set[str] = set()
        for change in raw_changes:
            if change.kind is ChangeKind.RENAMED and change.old_path is not None:
                old_watched = self.is_watched(change.old_path)
                new_watched = self.is_watched(change.path)
                if old_watched and new_watched:
                    candidates[change.path] = change
                    rename_sources.add(change.old_path)
                elif old_watched:
                    candidates[change.old_path] = FileChange(change.old_path, ChangeKind.DELETED)
                elif new_watched:
                    candidates[change.path] = FileChange(change.path, ChangeKind.ADDED)
            elif self.is_watched(change.path):
                candidates[change.path] = change

        for path in snapshot.pending_paths:
            if path not in candidates and path not in rename_sources and self.is_watched(path):
                candidates[path] = FileChange(path, ChangeKind.MODIFIED)
        for path in rename_sources:
            candidates.pop(path, None)
        return candidates

    def _process(self, change: FileChange, snapshot: Snapshot, current: str, collected: _Collected) -> None:
        path = change.path
        prior_path = change.baseline_path
        renamed = change.kind is ChangeKind.RENAMED and prior_path != path

        content = None if change.kind is ChangeKind.DELETED else self._vcs.file_content_at(path, current)
        new_hash = ABSENT if content is None else self._hasher.hash_bytes(content)
        prior = snapshot.files.get(prior_path)
        if renamed and prior is None and path in snapshot.files:
            # The rename was committed by an earlier cycle; compare against the new path.
            prior = snapshot.files[path]
            renamed = False
        if not renamed and prior is not None and prior.content_hash == new_hash:
            return

        try:
            baseline_units = self._baseline_units(change, prior, snapshot.revision.commit)
            current_units = self._discover(path, content) if content is not None else {}
        except DiscoveryError as exc:
            logger.warning('Skipping %s this cycle: %s', exc.path, exc.reason)
            collected.errors.append(exc)
            collected.skipped.add(path)
            return

        if not baseline_units and not current_units:
            collected.source_files.add(path)

        for name, unit in current_units.items():
            old = baseline_units.get(name)
            if old is None:
                collected.added.add(unit)
                continue
            if old.content_hash != unit.content_hash:
                collected.modified.add(unit)
            if renamed:
                collected.renamed[old.unit_id] = unit.unit_id
        for name, old in baseline_units.items():
            if name not in current_units:
                collected.removed.add(old.unit_id)

        if renamed:
            collected.files[prior_path] = None
        collected.files[path] = FileState(new_hash, MappingProxyType(current_units))

    def _retried(self, snapshot: Snapshot, collected: _Collected) -> set[TestUnit]:
        if not snapshot.retry_units:
            return set()
        files: dict[str, FileState] = dict(snapshot.files)
        for path, state in collected.files.items():
            if state is None:
                files.pop(path, None)
            else:
                files[path] = state
        units = {unit.unit_id: unit for state in files.values() for unit in state.units.values()}
        scheduled = {unit.unit_id for unit in collected.added | collected.modified}
        retried: set[TestUnit] = set()
        for unit_id in snapshot.retry_units:
            current_id = collected.renamed.get(unit_id, unit_id)
            if current_id in units and current_id not in scheduled:
                retried.add(units[current_id])
        if retried:
            logger.debug('Retrying %d unit(s) that failed to run last cycle', len(retried))
        return retried

    def _baseline_units(self, change: FileChange, prior: FileState | None, baseline_commit: str) -> dict[str, TestUnit]:
        if prior is not None:
            return dict(prior.units)
        if change.kind is ChangeKind.ADDED or self._registry.for_path(change.baseline_path) is None:
            return {}
        content = self._vcs.file_content_at(change.baseline_path, baseline_commit)
        if content is None:
            return {}
        return self._discover(change.baseline_path, content)

    def _discover(self, path: str, content: bytes) -> dict[str, TestUnit]:
        discoverer = self._registry.for_path(path)
        if discoverer is None:
            return {}
        return {unit.name: unit for unit in discoverer.discover(path, content)}

    def _digest(
        self,
        pending: frozenset[str],
        snapshot: Snapshot,
        updates: dict[str, FileState | None],
    ) -> str:
        parts: list[str] = []
        for path in sorted(pending):
            state = updates[path] if path in updates else snapshot.files.get(path)
            parts.append(f'{path}:{state.content_hash if state is not None else "?"}')
        return self._hasher.hash_combined(parts)
