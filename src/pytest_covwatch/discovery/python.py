"""Test-unit discovery for Python files following pytest's naming rules.

Module-level functions named ``test*`` are units, as are ``test*`` methods of
classes named ``Test*`` (nested test classes included). Each unit's content
hash covers its dedented source with decorators, so reindenting a whole class
or moving a test down the file does not count as a modification.
"""

from __future__ import annotations

import ast
from fnmatch import fnmatchcase
from pathlib import PurePosixPath
import textwrap
from typing import TYPE_CHECKING

from pytest_covwatch.config import DEFAULT_TEST_FILES
from pytest_covwatch.discovery.unit import NODE_ID_SEPARATOR, TestUnit
from pytest_covwatch.errors import DiscoveryError
from pytest_covwatch.snapshot.hasher import ContentHasher


if TYPE_CHECKING:
    from collections.abc import Iterable


FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef


class TestUnitVisitor(ast.NodeVisitor):
    """AST visitor that collects test functions and test methods.

    Attributes:
        found: (qualified name, node) pairs in source order.
    """

    __test__ = False

    def __init__(self, function_prefix: str = 'test', class_prefix: str = 'Test') -> None:
        self.found: list[tuple[str, FunctionNode]] = []
        self._function_prefix = function_prefix
        self._class_prefix = class_prefix
        self._class_stack: list[str] = []

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        """Descend into test classes only."""
        if not node.name.startswith(self._class_prefix):
            return
        self._class_stack.append(node.name)
        self.generic_visit(node)
        self._class_stack.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        """Collect test functions; nested functions are not units."""
        self._collect(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        """Collect async test functions."""
        self._collect(node)

    def _collect(self, node: FunctionNode) -> None:
        if node.name.startswith(self._function_prefix):
            qualified = NODE_ID_SEPARATOR.join([*self._class_stack, node.name])
            self.found.append((qualified, node))


class PythonUnitDiscoverer:
    """Discovers pytest-style test units in Python source.

    Example:
        >>> discoverer = PythonUnitDiscoverer()
        >>> units = discoverer.discover('tests/test_calc.py', b'def test_add():\\n    assert 1 + 1 == 2\\n')
        >>> sorted(unit.node_id for unit in units)
        ['tests/test_calc.py::test_add']
    """

    def __init__(self, test_files: Iterable[str] | None = None) -> None:
        """Create a discoverer.

        Args:
            test_files: File name patterns that hold tests. Defaults to
                pytest's ``test_*.py`` and ``*_test.py``.
        """
        self._patterns = tuple(test_files) if test_files is not None else tuple(DEFAULT_TEST_FILES)
        self._hasher = ContentHasher()

    @property
    def name(self) -> str:
        """Return unique identifier for this discoverer."""
        return 'python'

    def matches(self, path: str) -> bool:
        """Return True if the file name matches one of the test file patterns."""
        file_name = PurePosixPath(path).name
        return any(fnmatchcase(file_name, pattern) for pattern in self._patterns)

    def discover(self, path: str, content: bytes) -> set[TestUnit]:
        """Parse a file snapshot and return its test units.

        Raises:
            DiscoveryError: If the content is not valid UTF-8 Python.
        """
        try:
            source = content.decode('utf-8')
            tree = ast.parse(source, filename=path)
        except (UnicodeDecodeError, SyntaxError, ValueError) as exc:
            raise DiscoveryError(path, f'cannot parse: {exc}') from exc

        visitor = TestUnitVisitor()
        visitor.visit(tree)

        lines = source.splitlines()
        units: dict[str, TestUnit] = {}
        for qualified, node in visitor.found:
            start = min([node.lineno, *(decorator.lineno for decorator in node.decorator_list)])
            end = node.end_lineno if node.end_lineno is not None else node.lineno
            body = textwrap.dedent('\n'.join(lines[start - 1 : end]))
            # A later definition with the same name shadows the earlier one, as at runtime.
            units[qualified] = TestUnit(
                path=path,
                name=qualified,
                start_line=start,
                end_line=end,
                content_hash=self._hasher.hash_string(body),
            )
        return set(units.values())
