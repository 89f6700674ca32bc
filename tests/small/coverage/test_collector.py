"""Tests for CoverageCollector.

The collector turns coverage.py data into (relative path, line) hit maps.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import coverage
import pytest

from pytest_covwatch.coverage.collector import CoverageCollector


@pytest.mark.small
class TestExtractLines:
    """Tests for reading a CoverageData object."""

    def test_extracts_lines_per_measured_file(self, tmp_path):
        data = MagicMock()
        data.measured_files.return_value = [str(tmp_path / 'a.py'), str(tmp_path / 'b.py')]
        data.lines.side_effect = lambda path: [1, 2] if path.endswith('a.py') else []

        result = CoverageCollector(tmp_path).extract_lines_from_coverage_data(data)

        assert result == {str(tmp_path / 'a.py'): [1, 2]}

    def test_unmeasured_file_is_skipped(self, tmp_path):
        data = MagicMock()
        data.measured_files.return_value = ['x.py']
        data.lines.return_value = None

        assert CoverageCollector(tmp_path).extract_lines_from_coverage_data(data) == {}


@pytest.mark.small
class TestHitsFromLines:
    """Tests for path normalization and hit counting."""

    def test_paths_become_relative_posix(self, tmp_path):
        collector = CoverageCollector(tmp_path)

        hits = collector.hits_from_lines({str(tmp_path / 'src' / 'a.py'): [3, 4]})

        assert hits == {('src/a.py', 3): 1, ('src/a.py', 4): 1}

    def test_relative_paths_are_resolved_against_root(self, tmp_path):
        collector = CoverageCollector(tmp_path)

        assert collector.relative_path('src/a.py') == 'src/a.py'

    def test_files_outside_root_are_dropped(self, tmp_path):
        collector = CoverageCollector(tmp_path / 'project')

        assert collector.hits_from_lines({str(tmp_path / 'elsewhere.py'): [1]}) == {}


@pytest.mark.medium
class TestReadHits:
    """Tests for reading real coverage.py data files."""

    def test_missing_file_means_no_hits(self, tmp_path):
        assert CoverageCollector(tmp_path).read_hits(tmp_path / '.coverage') == {}

    def test_reads_coverage_data_file(self, tmp_path):
        source = tmp_path / 'src' / 'a.py'
        source.parent.mkdir()
        source.write_text('x = 1\ny = 2\n')
        data_file = tmp_path / '.coverage'
        data = coverage.CoverageData(basename=str(data_file))
        data.add_lines({str(source): [1, 2]})
        data.write()

        hits = CoverageCollector(tmp_path).read_hits(data_file)

        assert hits == {('src/a.py', 1): 1, ('src/a.py', 2): 1}
