"""Watch loop: file events in, committed coverage snapshots out.

Exports:
    WatchCycle: One detect, schedule, execute, attribute, commit pass
    CycleResult: Outcome of a cycle
    CycleState: Stages of a cycle
    CycleCoordinator: Serializes cycles behind a single consumer thread
    FileWatcher: Debounced file system watcher
"""

from __future__ import annotations

from pytest_covwatch.watch.coordinator import CycleCoordinator
from pytest_covwatch.watch.cycle import CycleResult, CycleState, WatchCycle
from pytest_covwatch.watch.watcher import FileWatcher


__all__ = ['CycleCoordinator', 'CycleResult', 'CycleState', 'FileWatcher', 'WatchCycle']
