"""Command line entry point for pytest-covwatch.

Usage:
    pytest-covwatch [--root DIR] [--workers N] [--timeout S] [--debounce-ms MS]
                    [--source PATHS] [--once] [--reset] [--summary] [-v]
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
import threading
from typing import TYPE_CHECKING

from pytest_covwatch import __version__
from pytest_covwatch.config import load_config, merge_configs
from pytest_covwatch.detection import ChangeDetector
from pytest_covwatch.discovery import default_registry
from pytest_covwatch.errors import CovwatchError
from pytest_covwatch.execution import CoverageRunner
from pytest_covwatch.parallel import ExecutionScheduler, PoolConfig
from pytest_covwatch.reporting import AggregateReport, ConsoleReporter
from pytest_covwatch.snapshot import Snapshot, SnapshotStore
from pytest_covwatch.vcs import GitRepository
from pytest_covwatch.watch import CycleCoordinator, FileWatcher, WatchCycle


if TYPE_CHECKING:
    from collections.abc import Sequence

    from pytest_covwatch.config import CovwatchConfig
    from pytest_covwatch.watch.cycle import CycleResult


logger = logging.getLogger(__name__)

SNAPSHOT_FILE = 'snapshot.db'


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog='pytest-covwatch',
        description='Watch a git working tree and keep per-test line coverage up to date.',
    )
    parser.add_argument(
        '--root',
        type=Path,
        default=Path.cwd(),
        help='Repository root to watch (default: current directory)',
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=None,
        help='Maximum number of tests run at the same time (default: CPU count)',
    )
    parser.add_argument(
        '--timeout',
        type=int,
        default=None,
        help='Per-test timeout in seconds (default: 30)',
    )
    parser.add_argument(
        '--debounce-ms',
        type=int,
        default=None,
        help='Quiet period after a file change before a cycle starts (default: 2000)',
    )
    parser.add_argument(
        '--source',
        default=None,
        help='Comma-separated paths to measure (default: the repository root)',
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single cycle against the working tree and exit',
    )
    parser.add_argument(
        '--reset',
        action='store_true',
        help='Forget the stored snapshot and start again from HEAD',
    )
    parser.add_argument(
        '--summary',
        action='store_true',
        help='Print per-file coverage totals after each cycle',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def _build_cycle(root: Path, config: CovwatchConfig, repo: GitRepository, report: AggregateReport) -> WatchCycle:
    detector = ChangeDetector(
        repo,
        default_registry(config.test_files),
        include=config.include,
        exclude=config.exclude,
    )
    runner = CoverageRunner(root, timeout=config.timeout, source=config.source)
    scheduler = ExecutionScheduler(runner, PoolConfig.from_config(config))
    return WatchCycle(detector, scheduler, report)


def _initial_snapshot(store: SnapshotStore, repo: GitRepository, reset: bool) -> Snapshot:
    if reset:
        logger.info('Discarding stored snapshot')
        store.clear()
    snapshot = store.load()
    if snapshot is None:
        snapshot = Snapshot.initial(repo.head())
        logger.info('Starting from HEAD %s', snapshot.revision.commit[:12])
    else:
        logger.info('Resuming from %s', snapshot.revision)
    return snapshot


def main(argv: Sequence[str] | None = None) -> int:
    """Run pytest-covwatch.

    Returns:
        Process exit code: 0 on success, 1 if a ``--once`` cycle failed, 2 on
        configuration or repository errors.
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    root = args.root.resolve()
    try:
        config = merge_configs(
            load_config(root),
            cli_workers=args.workers,
            cli_timeout=args.timeout,
            cli_debounce_ms=args.debounce_ms,
            cli_source=args.source,
        )
        repo = GitRepository(root)
    except (ValueError, CovwatchError) as exc:
        logger.error('%s', exc)  # noqa: TRY400
        return 2

    reporter = ConsoleReporter()

    with SnapshotStore(root / config.state_dir / SNAPSHOT_FILE) as store:
        try:
            snapshot = _initial_snapshot(store, repo, args.reset)
        except CovwatchError as exc:
            logger.error('%s', exc)  # noqa: TRY400
            return 2

        report = AggregateReport(snapshot, store)
        cycle = _build_cycle(root, config, repo, report)

        def on_result(result: CycleResult) -> None:
            reporter.write_cycle(result)
            if args.summary:
                reporter.write_summary(report.summary())

        coordinator = CycleCoordinator(
            cycle,
            report,
            on_result=on_result,
            abandon_on_change=config.abandon_on_change,
        )

        if args.once:
            result = coordinator.run_once()
            return 0 if result.committed else 1

        return _watch(root, config, coordinator)


def _watch(root: Path, config: CovwatchConfig, coordinator: CycleCoordinator) -> int:
    watcher = FileWatcher(
        root,
        lambda _paths: coordinator.trigger(),
        debounce_ms=config.debounce_ms,
        ignore_patterns=[config.state_dir],
    )
    stop = threading.Event()
    with coordinator, watcher:
        coordinator.trigger()
        try:
            stop.wait()
        except KeyboardInterrupt:
            logger.info('Interrupted, shutting down')
    return 0


if __name__ == '__main__':
    sys.exit(main())
