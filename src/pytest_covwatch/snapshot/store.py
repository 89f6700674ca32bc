"""SQLite-backed persistence for the committed snapshot.

The SnapshotStore keeps the last committed Snapshot on disk so that a
restarted watcher resumes from its previous revision instead of re-running
every new test. A snapshot is always written in a single transaction, so the
file never holds a half-committed cycle.
"""

from __future__ import annotations

import logging
import sqlite3
from types import MappingProxyType
from typing import TYPE_CHECKING

from pytest_covwatch.coverage.table import CoverageTable
from pytest_covwatch.discovery.unit import TestUnit, UnitId
from pytest_covwatch.errors import StoreError
from pytest_covwatch.snapshot.models import FileState, Revision, Snapshot


if TYPE_CHECKING:
    from pathlib import Path


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS files (
        path TEXT PRIMARY KEY,
        content_hash TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS units (
        path TEXT NOT NULL,
        name TEXT NOT NULL,
        start_line INTEGER NOT NULL,
        end_line INTEGER NOT NULL,
        content_hash TEXT NOT NULL,
        PRIMARY KEY (path, name)
    );
    CREATE TABLE IF NOT EXISTS coverage (
        source_path TEXT NOT NULL,
        line INTEGER NOT NULL,
        unit_path TEXT NOT NULL,
        unit_name TEXT NOT NULL,
        hits INTEGER NOT NULL,
        PRIMARY KEY (source_path, line, unit_path, unit_name)
    );
    CREATE TABLE IF NOT EXISTS pending (
        path TEXT PRIMARY KEY
    );
    CREATE TABLE IF NOT EXISTS retry (
        unit_path TEXT NOT NULL,
        unit_name TEXT NOT NULL,
        PRIMARY KEY (unit_path, unit_name)
    );
"""


class SnapshotStore:
    """SQLite-backed store for the committed Snapshot.

    Example:
        >>> from pathlib import Path
        >>> store = SnapshotStore(Path('.covwatch/snapshot.db'))
        >>> store.save(Snapshot.initial('abc123'))
        >>> store.load().revision.commit
        'abc123'
        >>> store.close()
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the snapshot store.

        If the database file is corrupted, it will be deleted and a fresh
        database will be created. A warning will be logged in this case.

        Args:
            db_path: Path to the SQLite database file. Parent directories
                     will be created if they don't exist.
        """
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._conn = self._open_or_recreate_db()

    @property
    def db_path(self) -> Path:
        """Return the path of the database file."""
        return self._db_path

    def _open_or_recreate_db(self) -> sqlite3.Connection:
        """Open the database, recreating it if corrupted or from another schema version."""
        conn: sqlite3.Connection | None = None
        try:
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._init_schema_on_conn(conn)
        except sqlite3.DatabaseError:
            logger.warning('Snapshot database corrupted at %s, recreating', self._db_path)
            if conn is not None:  # pragma: no branch
                conn.close()
            self._db_path.unlink(missing_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._init_schema_on_conn(conn)
        return conn

    def _init_schema_on_conn(self, conn: sqlite3.Connection) -> None:
        conn.executescript(_SCHEMA)
        row = conn.execute("SELECT value FROM meta WHERE key = 'schema_version'").fetchone()
        if row is None:
            conn.execute(
                "INSERT INTO meta (key, value) VALUES ('schema_version', ?)",
                (str(SCHEMA_VERSION),),
            )
        elif row[0] != str(SCHEMA_VERSION):
            msg = f'unsupported schema version {row[0]}'
            raise sqlite3.DatabaseError(msg)
        conn.commit()

    def load(self) -> Snapshot | None:
        """Load the stored snapshot.

        Returns:
            The last saved Snapshot, or None if nothing was saved yet.
        """
        meta = dict(self._conn.execute('SELECT key, value FROM meta').fetchall())
        if 'commit' not in meta:
            return None

        revision = Revision(
            commit=meta['commit'],
            worktree_digest=meta['worktree_digest'],
            sequence=int(meta['sequence']),
        )

        units_by_path: dict[str, dict[str, TestUnit]] = {}
        for path, name, start_line, end_line, content_hash in self._conn.execute(
            'SELECT path, name, start_line, end_line, content_hash FROM units'
        ):
            units_by_path.setdefault(path, {})[name] = TestUnit(path, name, start_line, end_line, content_hash)

        files = {
            path: FileState(content_hash, MappingProxyType(units_by_path.get(path, {})))
            for path, content_hash in self._conn.execute('SELECT path, content_hash FROM files')
        }

        coverage = CoverageTable()
        for source_path, line, unit_path, unit_name, hits in self._conn.execute(
            'SELECT source_path, line, unit_path, unit_name, hits FROM coverage'
        ):
            coverage.add(source_path, line, UnitId(unit_path, unit_name), hits)

        pending = frozenset(row[0] for row in self._conn.execute('SELECT path FROM pending'))
        retry = frozenset(
            UnitId(unit_path, unit_name)
            for unit_path, unit_name in self._conn.execute('SELECT unit_path, unit_name FROM retry')
        )

        return Snapshot(
            revision=revision,
            files=MappingProxyType(files),
            coverage=coverage,
            pending_paths=pending,
            retry_units=retry,
        )

    def save(self, snapshot: Snapshot) -> None:
        """Replace the stored snapshot in a single transaction.

        Raises:
            StoreError: If the write fails; the previous snapshot is kept.
        """
        revision = snapshot.revision
        try:
            with self._conn:
                self._conn.execute("DELETE FROM meta WHERE key != 'schema_version'")
                self._conn.executemany(
                    'INSERT INTO meta (key, value) VALUES (?, ?)',
                    [
                        ('commit', revision.commit),
                        ('worktree_digest', revision.worktree_digest),
                        ('sequence', str(revision.sequence)),
                    ],
                )
                self._conn.execute('DELETE FROM files')
                self._conn.executemany(
                    'INSERT INTO files (path, content_hash) VALUES (?, ?)',
                    [(path, state.content_hash) for path, state in snapshot.files.items()],
                )
                self._conn.execute('DELETE FROM units')
                self._conn.executemany(
                    'INSERT INTO units (path, name, start_line, end_line, content_hash) VALUES (?, ?, ?, ?, ?)',
                    [
                        (unit.path, unit.name, unit.start_line, unit.end_line, unit.content_hash)
                        for state in snapshot.files.values()
                        for unit in state.units.values()
                    ],
                )
                self._conn.execute('DELETE FROM coverage')
                self._conn.executemany(
                    'INSERT INTO coverage (source_path, line, unit_path, unit_name, hits) VALUES (?, ?, ?, ?, ?)',
                    [
                        (entry.path, entry.line, unit_id.path, unit_id.name, hits)
                        for entry in snapshot.coverage.entries()
                        for unit_id, hits in entry.hits_by_unit.items()
                    ],
                )
                self._conn.execute('DELETE FROM pending')
                self._conn.executemany(
                    'INSERT INTO pending (path) VALUES (?)',
                    [(path,) for path in sorted(snapshot.pending_paths)],
                )
                self._conn.execute('DELETE FROM retry')
                self._conn.executemany(
                    'INSERT INTO retry (unit_path, unit_name) VALUES (?, ?)',
                    [(unit_id.path, unit_id.name) for unit_id in sorted(snapshot.retry_units)],
                )
        except sqlite3.Error as exc:
            msg = f'Could not save snapshot {revision} to {self._db_path}: {exc}'
            raise StoreError(msg) from exc

    def clear(self) -> None:
        """Forget the stored snapshot."""
        with self._conn:
            for table in ('files', 'units', 'coverage', 'pending', 'retry'):
                self._conn.execute(f'DELETE FROM {table}')  # noqa: S608 - fixed table names
            self._conn.execute("DELETE FROM meta WHERE key != 'schema_version'")

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> SnapshotStore:
        """Context manager entry."""
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: object,
    ) -> None:
        """Context manager exit - closes the connection."""
        self.close()
