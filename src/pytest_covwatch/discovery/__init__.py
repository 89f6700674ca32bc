"""Test-unit discovery.

A test unit is a named, individually runnable piece of test code. The change
detector asks a discoverer for the units in two snapshots of a file and diffs
the results.

Exports:
    UnitId: Identity of a unit (path, name)
    TestUnit: A unit with its span and content hash
    UnitDiscoverer: Protocol implemented per language front-end
    PythonUnitDiscoverer: pytest-style discovery using the ast module
    DiscovererRegistry: Picks the discoverer for a path
"""

from __future__ import annotations

from pytest_covwatch.discovery.protocol import UnitDiscoverer
from pytest_covwatch.discovery.python import PythonUnitDiscoverer
from pytest_covwatch.discovery.registry import DiscovererRegistry, default_registry
from pytest_covwatch.discovery.unit import TestUnit, UnitId


__all__ = [
    'DiscovererRegistry',
    'PythonUnitDiscoverer',
    'TestUnit',
    'UnitDiscoverer',
    'UnitId',
    'default_registry',
]
