"""CoverageCollector for turning coverage.py data into per-line hit counts.

coverage.py records which lines executed, not how often, so every measured
line becomes one hit for the run. Paths are made relative to the project root
so records line up with the paths version control reports.

Example:
    >>> collector = CoverageCollector(Path('/project'))
    >>> collector.hits_from_lines({'/project/src/auth.py': [10, 11]})
    {('src/auth.py', 10): 1, ('src/auth.py', 11): 1}
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import coverage


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class CoverageDataProtocol(Protocol):
    """Protocol for coverage.py's CoverageData interface.

    This protocol defines the subset of coverage.py's CoverageData
    that we use, so tests can substitute a double.
    """

    def measured_files(self) -> Iterable[str]:
        """Return an iterable of file paths that have coverage data."""
        ...

    def lines(self, filename: str) -> Iterable[int] | None:
        """Return the lines covered for a file, or None if not measured."""
        ...


class CoverageCollector:
    """Reads coverage.py data files into relative (path, line) hit maps.

    Attributes:
        rootdir: Project root; measured files outside it are ignored.
    """

    def __init__(self, rootdir: Path) -> None:
        """Create a collector for a project root."""
        self.rootdir = rootdir.resolve()

    def extract_lines_from_coverage_data(
        self,
        coverage_data: CoverageDataProtocol,
    ) -> dict[str, list[int]]:
        """Extract line coverage from coverage.py's CoverageData object.

        Args:
            coverage_data: A coverage.py CoverageData object.

        Returns:
            Dict mapping file paths to lists of covered line numbers.
        """
        result: dict[str, list[int]] = {}
        for file_path in coverage_data.measured_files():
            lines = coverage_data.lines(file_path)
            if lines:
                result[file_path] = list(lines)
        return result

    def relative_path(self, file_path: str) -> str | None:
        """Return ``file_path`` relative to the root as POSIX, or None if outside it."""
        path = Path(file_path)
        if not path.is_absolute():
            path = self.rootdir / path
        try:
            return path.resolve().relative_to(self.rootdir).as_posix()
        except ValueError:
            return None

    def hits_from_lines(self, lines_by_file: Mapping[str, Iterable[int]]) -> dict[tuple[str, int], int]:
        """Convert file-to-lines data into (relative path, line) hit counts."""
        hits: dict[tuple[str, int], int] = {}
        for file_path, lines in lines_by_file.items():
            relative = self.relative_path(file_path)
            if relative is None:
                continue
            for line in lines:
                hits[(relative, line)] = hits.get((relative, line), 0) + 1
        return hits

    def read_hits(self, data_file: Path) -> dict[tuple[str, int], int]:
        """Read a coverage.py data file into (relative path, line) hit counts.

        A missing data file means nothing was measured and yields no hits.
        """
        if not data_file.exists():
            return {}
        data = coverage.CoverageData(basename=str(data_file))
        data.read()
        return self.hits_from_lines(self.extract_lines_from_coverage_data(data))
