"""ChangeSet: what one watch cycle found different since the last snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Mapping

    from pytest_covwatch.discovery.unit import TestUnit, UnitId
    from pytest_covwatch.errors import DiscoveryError
    from pytest_covwatch.snapshot.models import FileState, Revision


@dataclass(frozen=True)
class ChangeSet:
    """Cycle-scoped description of changed test units and files.

    Attributes:
        revision: The revision this changeset moves the snapshot to.
        added: Units that did not exist before.
        modified: Units whose content hash changed.
        removed: Units that no longer exist.
        renamed: Units whose file was renamed, old id to new id. Their
            coverage carries over.
        source_files: Changed paths that define no test units.
        files: New cached state per processed path; None forgets the path.
        pending_paths: Paths to re-check next cycle.
        errors: Files whose units could not be discovered this cycle.
        retried: Unchanged units that failed to run last cycle and are run again.
    """

    revision: Revision
    added: frozenset[TestUnit] = frozenset()
    modified: frozenset[TestUnit] = frozenset()
    removed: frozenset[UnitId] = frozenset()
    renamed: Mapping[UnitId, UnitId] = field(default_factory=lambda: MappingProxyType({}))
    source_files: frozenset[str] = frozenset()
    files: Mapping[str, FileState | None] = field(default_factory=lambda: MappingProxyType({}))
    pending_paths: frozenset[str] = frozenset()
    errors: tuple[DiscoveryError, ...] = ()
    retried: frozenset[TestUnit] = frozenset()

    @property
    def to_run(self) -> frozenset[TestUnit]:
        """Return the units that need executing (added, modified or retried)."""
        return self.added | self.modified | self.retried

    @property
    def invalidated(self) -> frozenset[UnitId]:
        """Return the units whose previous coverage is stale."""
        return self.removed | {unit.unit_id for unit in self.modified | self.retried}

    @property
    def is_empty(self) -> bool:
        """Return True if no test unit needs running, pruning or renaming."""
        return not (self.added or self.modified or self.removed or self.renamed or self.retried)

    def describe(self) -> str:
        """Return a one-line summary for logs."""
        summary = (
            f'{len(self.added)} added, {len(self.modified)} modified, '
            f'{len(self.removed)} removed, {len(self.renamed)} renamed, '
            f'{len(self.source_files)} source file(s) changed'
        )
        if self.retried:
            summary += f', {len(self.retried)} retried'
        return summary
