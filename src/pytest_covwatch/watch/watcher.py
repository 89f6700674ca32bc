"""File watcher that turns bursts of file events into one change notification.

Editors save in several steps (write a temp file, rename, touch), so raw
watchdog events come in bursts. Events for watched files restart a debounce
timer; when it finally fires, the callback receives the set of changed paths
collected during the burst.
"""

from __future__ import annotations

import logging
from pathlib import Path
import threading
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from watchdog.observers.api import BaseObserver


logger = logging.getLogger(__name__)


class FileWatcher:
    """Watches a directory tree and reports debounced batches of changed files.

    Attributes:
        root: Directory being watched.
        debounce_ms: Quiet period before a batch is reported.
        suffixes: Only files with these suffixes are reported.
        ignore_patterns: Path components and ``*suffix`` globs to ignore.
    """

    DEFAULT_IGNORE_PATTERNS = (
        '.git',
        '__pycache__',
        'node_modules',
        '.venv',
        'venv',
        '.covwatch',
        '.mypy_cache',
        '.pytest_cache',
        '.ruff_cache',
        '*.pyc',
        '.coverage',
        'htmlcov',
        'dist',
        'build',
        '*.egg-info',
    )

    def __init__(
        self,
        root: Path,
        on_change: Callable[[set[str]], None],
        *,
        suffixes: Iterable[str] = ('.py',),
        debounce_ms: int = 2000,
        ignore_patterns: Iterable[str] | None = None,
    ) -> None:
        """Create a watcher.

        Args:
            root: Directory to watch recursively.
            on_change: Called with root-relative posix paths after each burst.
            suffixes: File suffixes to report.
            debounce_ms: Quiet period in milliseconds.
            ignore_patterns: Extra patterns added to DEFAULT_IGNORE_PATTERNS.
        """
        self.root = root.resolve()
        self.debounce_ms = debounce_ms
        self.suffixes = tuple(suffixes)
        self.ignore_patterns = set(self.DEFAULT_IGNORE_PATTERNS)
        if ignore_patterns:
            self.ignore_patterns.update(ignore_patterns)

        self._on_change = on_change
        self._lock = threading.Lock()
        self._pending: set[str] = set()
        self._timer: threading.Timer | None = None
        self._observer: BaseObserver | None = None

    @property
    def is_running(self) -> bool:
        """Return True while the observer is watching."""
        return self._observer is not None

    def start(self) -> None:
        """Start watching."""
        if self._observer is not None:
            logger.warning('File watcher already running')
            return
        observer = Observer()
        observer.schedule(_ChangeHandler(self.notify), str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info('Watching %s for changes', self.root)

    def stop(self) -> None:
        """Stop watching and drop any batch that has not been reported yet."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending.clear()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info('File watcher stopped')

    def notify(self, path: Path) -> None:
        """Record a change to ``path`` and restart the debounce timer.

        Paths outside the root, ignored paths and files without a watched
        suffix are dropped.
        """
        relative = self._relative(path)
        if relative is None or self._should_ignore(relative):
            return

        logger.debug('File changed: %s', relative)
        with self._lock:
            self._pending.add(relative.as_posix())
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_ms / 1000, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        """Report the pending batch now instead of waiting for the timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._flush()

    def _flush(self) -> None:
        with self._lock:
            batch = self._pending
            self._pending = set()
            self._timer = None
        if not batch:
            return
        logger.info('Detected changes in %d file(s)', len(batch))
        self._on_change(batch)

    def _relative(self, path: Path) -> Path | None:
        try:
            return path.resolve().relative_to(self.root)
        except ValueError:
            return None

    def _should_ignore(self, relative: Path) -> bool:
        if relative.suffix not in self.suffixes:
            return True
        for pattern in self.ignore_patterns:
            if pattern.startswith('*'):
                if relative.name.endswith(pattern[1:]):
                    return True
            elif pattern in relative.parts:
                return True
        return False

    def __enter__(self) -> FileWatcher:
        """Start watching on context entry."""
        self.start()
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: object,
    ) -> None:
        """Stop watching on context exit."""
        self.stop()


class _ChangeHandler(FileSystemEventHandler):
    """Forwards file created, modified, deleted and moved events."""

    def __init__(self, callback: Callable[[Path], None]) -> None:
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ('created', 'modified', 'deleted', 'moved'):
            return
        self.callback(Path(str(event.src_path)))
        dest_path = getattr(event, 'dest_path', '')
        if dest_path:
            self.callback(Path(str(dest_path)))
