"""Version-control collaborator: protocol and git implementation."""

from pytest_covwatch.vcs.git import GitRepository
from pytest_covwatch.vcs.protocol import WORKING_TREE, ChangeKind, FileChange, VersionControl


__all__ = ['WORKING_TREE', 'ChangeKind', 'FileChange', 'GitRepository', 'VersionControl']
