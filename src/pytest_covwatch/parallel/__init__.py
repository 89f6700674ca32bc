"""Parallel execution module for pytest-covwatch.

This module provides components for running test units in parallel:

- ExecutionScheduler: Picks the units a changeset needs and dispatches them
- WorkerPool: Bounds how many units run at once
- ExecutionAggregator: Collects records and failures from workers
- PoolConfig: Concurrency bound and cancel polling settings
"""

from __future__ import annotations

from pytest_covwatch.parallel.aggregator import ExecutionAggregator
from pytest_covwatch.parallel.pool import WorkerPool
from pytest_covwatch.parallel.pool_config import PoolConfig
from pytest_covwatch.parallel.scheduler import ExecutionOutcome, ExecutionScheduler


__all__ = ['ExecutionAggregator', 'ExecutionOutcome', 'ExecutionScheduler', 'PoolConfig', 'WorkerPool']
