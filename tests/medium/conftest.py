"""Fixtures for tests that drive a real git repository."""

from __future__ import annotations

from pathlib import Path

import git
import pytest


AUTHOR = git.Actor('covwatch tests', 'tests@example.com')


class GitWorkspace:
    """A throwaway git working tree with helpers for editing and committing."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.repo = git.Repo.init(root)

    def write(self, path: str, content: str) -> None:
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def delete(self, path: str) -> None:
        (self.root / path).unlink()

    def commit(self, message: str = 'update') -> str:
        self.repo.git.add(A=True)
        return self.repo.index.commit(message, author=AUTHOR, committer=AUTHOR).hexsha


@pytest.fixture
def workspace(tmp_path: Path) -> GitWorkspace:
    """Return a git workspace with one initial commit."""
    ws = GitWorkspace(tmp_path)
    ws.write('README.md', 'project\n')
    ws.commit('initial')
    return ws
