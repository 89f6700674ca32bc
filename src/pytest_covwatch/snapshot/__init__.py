"""Snapshot module: the state carried between watch cycles.

Provides the Revision/FileState/Snapshot values, content hashing used to
detect changes, and SQLite persistence of the committed snapshot.
"""

from pytest_covwatch.snapshot.hasher import ContentHasher
from pytest_covwatch.snapshot.models import FileState, Revision, Snapshot
from pytest_covwatch.snapshot.store import SnapshotStore


__all__ = ['ContentHasher', 'FileState', 'Revision', 'Snapshot', 'SnapshotStore']
