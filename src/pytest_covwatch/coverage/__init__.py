"""Per-test coverage attribution.

This module keeps the answer to "which tests cover this line, and how often"
up to date as tests are added, edited and deleted:

    coverage_table = {
        ("src/auth.py", 42): {"tests/test_auth.py::test_login": 1,
                              "tests/test_auth.py::test_logout": 1},
        ("src/shipping.py", 17): {"tests/test_ship.py::test_rate": 1},
    }

Exports:
    CoverageTable: Maps source locations to attributing units and hits
    CoverageEntry: Read-only view of one location
    CoverageAttributor: Merges execution records into a table
    CoverageCollector: Reads coverage.py data into hit maps
"""

from __future__ import annotations

from pytest_covwatch.coverage.attributor import CoverageAttributor
from pytest_covwatch.coverage.collector import CoverageCollector
from pytest_covwatch.coverage.table import CoverageEntry, CoverageTable


__all__ = ['CoverageAttributor', 'CoverageCollector', 'CoverageEntry', 'CoverageTable']
