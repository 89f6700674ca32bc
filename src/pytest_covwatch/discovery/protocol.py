"""Protocol definition for test-unit discoverers.

One discoverer exists per supported language front-end. The change detector
only talks to this protocol and never depends on concrete syntax.
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Protocol,
    runtime_checkable,
)


if TYPE_CHECKING:
    from pytest_covwatch.discovery.unit import TestUnit


@runtime_checkable
class UnitDiscoverer(Protocol):
    """Protocol for all test-unit discoverers.

    Attributes:
        name: Unique identifier for this discoverer (e.g., 'python').
    """

    @property
    def name(self) -> str:
        """Return unique identifier for this discoverer."""
        ...

    def matches(self, path: str) -> bool:
        """Return True if files at this path may define test units.

        Args:
            path: Repository-relative POSIX path.
        """
        ...

    def discover(self, path: str, content: bytes) -> set[TestUnit]:
        """Return every test unit defined in a file snapshot.

        Args:
            path: Repository-relative POSIX path of the file.
            content: The file content at the revision being examined.

        Returns:
            The test units defined in the content.

        Raises:
            DiscoveryError: If the content cannot be parsed.
        """
        ...
