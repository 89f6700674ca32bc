"""Test execution collaborator.

Exports:
    TestExecutor: Protocol for running one unit
    ExecutionRecord: Per-run status and per-line hit counts
    ExecutionStatus: PASSED or FAILED
    CoverageRunner: Runs a pytest node id under coverage.py in a subprocess
"""

from __future__ import annotations

from pytest_covwatch.execution.protocol import TestExecutor
from pytest_covwatch.execution.record import ExecutionRecord, ExecutionStatus
from pytest_covwatch.execution.runner import CoverageRunner


__all__ = ['CoverageRunner', 'ExecutionRecord', 'ExecutionStatus', 'TestExecutor']
