"""Test unit identity and attributes.

A TestUnit is a named, independently runnable piece of test code. Its identity
is the pair (file path, name within file), rendered as a pytest node id.
"""

from __future__ import annotations

from dataclasses import dataclass


NODE_ID_SEPARATOR = '::'


@dataclass(frozen=True, order=True)
class UnitId:
    """Identity of a test unit.

    Attributes:
        path: Repository-relative POSIX path of the defining file.
        name: Name within the file, e.g. 'test_add' or 'TestMath::test_add'.

    Example:
        >>> str(UnitId('tests/test_math.py', 'TestMath::test_add'))
        'tests/test_math.py::TestMath::test_add'
    """

    path: str
    name: str

    def __str__(self) -> str:
        return f'{self.path}{NODE_ID_SEPARATOR}{self.name}'

    @classmethod
    def parse(cls, node_id: str) -> UnitId:
        """Build a UnitId from a pytest node id.

        Raises:
            ValueError: If the node id has no '::' separator.
        """
        path, sep, name = node_id.partition(NODE_ID_SEPARATOR)
        if not sep or not name:
            msg = f'Not a test node id: {node_id!r}'
            raise ValueError(msg)
        return cls(path, name)

    def moved_to(self, path: str) -> UnitId:
        """Return the same unit name under a different file path."""
        return UnitId(path, self.name)


@dataclass(frozen=True)
class TestUnit:
    """A test unit discovered in a file snapshot.

    Attributes:
        path: Repository-relative POSIX path of the defining file.
        name: Name within the file.
        start_line: First line of the unit, decorators included (1-based).
        end_line: Last line of the unit (inclusive).
        content_hash: SHA-256 of the unit's dedented source.
    """

    __test__ = False

    path: str
    name: str
    start_line: int
    end_line: int
    content_hash: str

    @property
    def unit_id(self) -> UnitId:
        """Return the identity of this unit."""
        return UnitId(self.path, self.name)

    @property
    def node_id(self) -> str:
        """Return the pytest node id used to run this unit."""
        return str(self.unit_id)

    @property
    def span(self) -> tuple[int, int]:
        """Return (start_line, end_line)."""
        return self.start_line, self.end_line
