"""Reporting module for pytest-covwatch.

This module provides the committed, queryable coverage state and the
reporter that presents each watch cycle on the terminal.
"""

from pytest_covwatch.reporting.aggregate import (
    AggregateReport,
    CoverageDelta,
    FileSummary,
    coverage_delta,
)
from pytest_covwatch.reporting.console import ConsoleReporter


__all__ = [
    'AggregateReport',
    'ConsoleReporter',
    'CoverageDelta',
    'FileSummary',
    'coverage_delta',
]
