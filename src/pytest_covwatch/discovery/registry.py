"""Central registry for test-unit discoverers.

This module provides the DiscovererRegistry class which picks the discoverer
responsible for a given path.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pytest_covwatch.discovery.python import PythonUnitDiscoverer


if TYPE_CHECKING:
    from collections.abc import Iterable

    from pytest_covwatch.discovery.protocol import UnitDiscoverer


class DiscovererRegistry:
    """Central registry for test-unit discoverers.

    Discoverers are consulted in registration order; the first one whose
    ``matches`` accepts a path handles it. Paths no discoverer accepts are
    treated as plain source files.

    Example:
        >>> registry = DiscovererRegistry()
        >>> registry.register(PythonUnitDiscoverer())
        >>> registry.for_path('tests/test_calc.py').name
        'python'
        >>> registry.for_path('src/calc.py') is None
        True
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._discoverers: dict[str, UnitDiscoverer] = {}

    def register(self, discoverer: UnitDiscoverer, name: str | None = None) -> None:
        """Register a discoverer.

        Args:
            discoverer: The discoverer instance to register.
            name: Optional name to register under. If not provided,
                  uses the discoverer's name property.
        """
        key = name if name is not None else discoverer.name
        self._discoverers[key] = discoverer

    def get(self, name: str) -> UnitDiscoverer:
        """Get a single discoverer by name.

        Raises:
            KeyError: If no discoverer is registered with the given name.
        """
        if name not in self._discoverers:
            raise KeyError(f"Unknown discoverer: '{name}'")
        return self._discoverers[name]

    def for_path(self, path: str) -> UnitDiscoverer | None:
        """Return the discoverer for a path, or None if the path holds no tests."""
        for discoverer in self._discoverers.values():
            if discoverer.matches(path):
                return discoverer
        return None

    def available(self) -> list[str]:
        """List all registered discoverer names."""
        return list(self._discoverers.keys())


def default_registry(test_files: Iterable[str] | None = None) -> DiscovererRegistry:
    """Return a registry with the built-in Python discoverer."""
    registry = DiscovererRegistry()
    registry.register(PythonUnitDiscoverer(test_files))
    return registry
