"""Git backend for the version-control collaborator, built on GitPython.

Compares a baseline commit's tree against the working tree (tracked changes,
renames found by git's rename detection, and untracked files that are not
ignored), and reads file contents from either side.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import git
from git.exc import BadName, BadObject, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from pytest_covwatch.errors import DiffError
from pytest_covwatch.vcs.protocol import WORKING_TREE, ChangeKind, FileChange


if TYPE_CHECKING:
    from git.objects import Commit


logger = logging.getLogger(__name__)

_CHANGE_KINDS = {
    'A': ChangeKind.ADDED,
    'D': ChangeKind.DELETED,
    'R': ChangeKind.RENAMED,
    'M': ChangeKind.MODIFIED,
    'T': ChangeKind.MODIFIED,
}


class GitRepository:
    """VersionControl implementation for a git checkout.

    Example:
        >>> repo = GitRepository(Path('.'))
        >>> changes = repo.diff_files(repo.head())
    """

    def __init__(self, root: Path) -> None:
        """Open the repository whose working tree is ``root``.

        Raises:
            DiffError: If ``root`` is not a non-bare git working tree.
        """
        try:
            self._repo = git.Repo(root)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            msg = f'Not a git working tree: {root}'
            raise DiffError(msg) from exc
        if self._repo.bare or self._repo.working_tree_dir is None:
            msg = f'Repository at {root} has no working tree'
            raise DiffError(msg)
        self._root = Path(self._repo.working_tree_dir)

    @property
    def root(self) -> Path:
        """Return the working tree directory."""
        return self._root

    def head(self) -> str:
        """Return the commit id HEAD points at."""
        try:
            return self._repo.head.commit.hexsha
        except ValueError as exc:
            msg = 'Repository has no commits yet'
            raise DiffError(msg) from exc

    def _commit(self, revision: str) -> Commit:
        try:
            return self._repo.commit(revision)
        except (BadName, BadObject, ValueError, GitCommandError) as exc:
            msg = f'Unknown revision {revision!r}'
            raise DiffError(msg) from exc

    def diff_files(self, baseline: str, current: str = WORKING_TREE) -> set[FileChange]:
        """Return the files differing between ``baseline`` and ``current``.

        Raises:
            DiffError: If a revision is unknown, git fails, or the index holds
                unresolved merge conflicts.
        """
        base_commit = self._commit(baseline)
        try:
            if current == WORKING_TREE:
                if self._repo.index.unmerged_blobs():
                    msg = 'Working tree has unresolved merge conflicts'
                    raise DiffError(msg)
                diffs = base_commit.diff(None)
                untracked = list(self._repo.untracked_files)
            else:
                diffs = base_commit.diff(self._commit(current))
                untracked = []
        except GitCommandError as exc:
            msg = f'git diff against {baseline[:12]} failed: {exc}'
            raise DiffError(msg) from exc

        changes: set[FileChange] = set()
        for diff in diffs:
            kind = _CHANGE_KINDS.get(diff.change_type or 'M', ChangeKind.MODIFIED)
            if kind is ChangeKind.RENAMED:
                changes.add(FileChange(str(diff.rename_to), kind, old_path=str(diff.rename_from)))
            elif kind is ChangeKind.DELETED:
                changes.add(FileChange(str(diff.a_path), kind))
            else:
                changes.add(FileChange(str(diff.b_path or diff.a_path), kind))
        for path in untracked:
            changes.add(FileChange(Path(path).as_posix(), ChangeKind.ADDED))

        logger.debug('%d file(s) differ from %s', len(changes), baseline[:12])
        return changes

    def file_content_at(self, path: str, revision: str) -> bytes | None:
        """Return a file's content at a revision, or None if it does not exist there."""
        if revision == WORKING_TREE:
            try:
                return (self._root / path).read_bytes()
            except FileNotFoundError:
                return None
            except OSError as exc:
                msg = f'Cannot read {path} from the working tree: {exc}'
                raise DiffError(msg) from exc

        commit = self._commit(revision)
        try:
            blob = commit.tree / path
        except KeyError:
            return None
        content: bytes = blob.data_stream.read()
        return content
