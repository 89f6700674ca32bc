"""Tests for GitRepository against a real git working tree."""

from __future__ import annotations

import pytest

from pytest_covwatch.errors import DiffError
from pytest_covwatch.vcs.git import GitRepository
from pytest_covwatch.vcs.protocol import WORKING_TREE, ChangeKind, FileChange


class TestGitRepository:
    """Tests for diffing and reading files."""

    def test_clean_tree_has_no_changes(self, workspace):
        repo = GitRepository(workspace.root)

        assert repo.diff_files(repo.head()) == set()

    def test_untracked_file_is_added(self, workspace):
        repo = GitRepository(workspace.root)
        workspace.write('tests/test_new.py', 'def test_a():\n    pass\n')

        assert repo.diff_files(repo.head()) == {FileChange('tests/test_new.py', ChangeKind.ADDED)}

    def test_modified_and_deleted_files(self, workspace):
        workspace.write('tests/test_a.py', 'def test_a():\n    pass\n')
        workspace.write('tests/test_b.py', 'def test_b():\n    pass\n')
        workspace.commit()
        repo = GitRepository(workspace.root)

        workspace.write('tests/test_a.py', 'def test_a():\n    assert True\n')
        workspace.delete('tests/test_b.py')

        assert repo.diff_files(repo.head()) == {
            FileChange('tests/test_a.py', ChangeKind.MODIFIED),
            FileChange('tests/test_b.py', ChangeKind.DELETED),
        }

    def test_staged_rename_is_detected(self, workspace):
        body = ''.join(f'def test_{i}():\n    assert {i} == {i}\n\n\n' for i in range(5))
        workspace.write('tests/test_old.py', body)
        workspace.commit()
        repo = GitRepository(workspace.root)

        workspace.repo.git.mv('tests/test_old.py', 'tests/test_new.py')

        assert repo.diff_files(repo.head()) == {
            FileChange('tests/test_new.py', ChangeKind.RENAMED, old_path='tests/test_old.py'),
        }

    def test_diff_between_commits(self, workspace):
        first = workspace.commit('empty')
        workspace.write('tests/test_a.py', 'def test_a():\n    pass\n')
        second = workspace.commit('add test')
        repo = GitRepository(workspace.root)

        assert repo.diff_files(first, second) == {FileChange('tests/test_a.py', ChangeKind.ADDED)}

    def test_file_content_at_commit_and_working_tree(self, workspace):
        workspace.write('tests/test_a.py', 'old\n')
        commit = workspace.commit()
        workspace.write('tests/test_a.py', 'new\n')
        repo = GitRepository(workspace.root)

        assert repo.file_content_at('tests/test_a.py', commit) == b'old\n'
        assert repo.file_content_at('tests/test_a.py', WORKING_TREE) == b'new\n'
        assert repo.file_content_at('tests/missing.py', commit) is None
        assert repo.file_content_at('tests/missing.py', WORKING_TREE) is None

    def test_unknown_revision_raises(self, workspace):
        repo = GitRepository(workspace.root)

        with pytest.raises(DiffError, match='Unknown revision'):
            repo.diff_files('0' * 40)

    def test_not_a_repository_raises(self, tmp_path):
        with pytest.raises(DiffError, match='Not a git working tree'):
            GitRepository(tmp_path / 'nowhere')
