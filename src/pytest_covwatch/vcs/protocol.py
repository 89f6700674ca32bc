"""Protocol definition for the version-control collaborator.

The change detector needs three things from version control: the current HEAD,
the set of files differing between a baseline commit and the working tree, and
file contents at either side.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


WORKING_TREE = ':working-tree:'
"""Pseudo-revision naming the uncommitted state of the checkout."""


class ChangeKind(Enum):
    """How a file differs between two revisions."""

    ADDED = 'added'
    MODIFIED = 'modified'
    DELETED = 'deleted'
    RENAMED = 'renamed'


@dataclass(frozen=True)
class FileChange:
    """One differing file.

    Attributes:
        path: Path on the current side (the old path for deletions).
        kind: How the file changed.
        old_path: Path on the baseline side, set for renames only.
    """

    path: str
    kind: ChangeKind
    old_path: str | None = None

    @property
    def baseline_path(self) -> str:
        """Return the path the file had at the baseline revision."""
        return self.old_path if self.old_path is not None else self.path


@runtime_checkable
class VersionControl(Protocol):
    """Protocol for version-control backends."""

    def head(self) -> str:
        """Return the commit id HEAD points at.

        Raises:
            DiffError: If the repository has no HEAD commit.
        """
        ...

    def diff_files(self, baseline: str, current: str = WORKING_TREE) -> set[FileChange]:
        """Return the files differing between two revisions.

        Raises:
            DiffError: If either revision cannot be read.
        """
        ...

    def file_content_at(self, path: str, revision: str) -> bytes | None:
        """Return a file's content at a revision, or None if it does not exist there.

        Raises:
            DiffError: If the revision cannot be read.
        """
        ...
