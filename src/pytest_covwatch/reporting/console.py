"""Console reporter for watch cycle results.

Produces human-readable output for terminal display: what changed, which
units ran, which could not run, and how the covered lines moved.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO


if TYPE_CHECKING:
    from collections.abc import Sequence

    from pytest_covwatch.errors import CovwatchError
    from pytest_covwatch.reporting.aggregate import FileSummary
    from pytest_covwatch.watch.cycle import CycleResult


class ConsoleReporter:
    """Reporter that writes watch cycle results to the console.

    Produces output in the following format:

        ================== pytest-covwatch cycle #4 ==================

        Changes: 1 added, 1 modified, 0 removed, 0 renamed
        Ran 2 test unit(s) in 812 ms

        Could not read:
          tests/test_bad.py: invalid syntax (line 3)

        Could not run:
          tests/test_api.py::test_slow     timed out after 30s

        Coverage:
          src/auth.py        +3 / -1
          src/shipping.py    +7 / -0
        ===============================================================

    Attributes:
        output: The file-like object to write to.
        max_problems: How many failures to list before summarizing.
    """

    BORDER_CHAR = '='
    BORDER_WIDTH = 70

    def __init__(self, output: TextIO | None = None, max_problems: int = 10) -> None:
        """Initialize the console reporter.

        Args:
            output: File-like object to write to. Defaults to sys.stdout.
            max_problems: How many failures to list before summarizing.
        """
        self.output = output or sys.stdout
        self.max_problems = max_problems

    def write_cycle(self, result: CycleResult) -> None:
        """Write the report of one watch cycle."""
        self._write_header(f' pytest-covwatch cycle #{self._cycle_number(result)} ')
        self._write_blank_line()

        changeset = result.changeset
        if not result.committed:
            self._write_line(f'Cycle failed: {result.error}')
            self._write_line('Coverage left at the last committed revision.')
        elif changeset is None or changeset.is_empty:
            self._write_line('No test changes.')
        else:
            self._write_line(f'Changes: {changeset.describe()}')
            self._write_line(f'Ran {result.outcome.dispatched} test unit(s) in {round(result.duration_ms)} ms')

        if result.committed:
            self._write_problems('Could not read:', changeset.errors if changeset is not None else ())
            self._write_problems('Could not run:', result.outcome.failures)
            self._write_delta(result)

        self._write_footer()

    def write_summary(self, summaries: list[FileSummary]) -> None:
        """Write per-file totals of the committed coverage table."""
        self._write_header(' pytest-covwatch coverage ')
        self._write_blank_line()
        if not summaries:
            self._write_line('No lines covered yet.')
        else:
            width = max(len(summary.path) for summary in summaries)
            for summary in summaries:
                self._write_line(
                    f'  {summary.path:<{width}}  {summary.covered_lines:>5} line(s)  '
                    f'{summary.hits:>6} hit(s)  {summary.units:>4} test(s)'
                )
        self._write_footer()

    @staticmethod
    def _cycle_number(result: CycleResult) -> int:
        # A failed cycle leaves the baseline snapshot in place; number it by the revision it attempted.
        if result.committed:
            return result.snapshot.revision.sequence
        if result.changeset is not None:
            return result.changeset.revision.sequence
        return result.snapshot.revision.sequence + 1

    def _write_problems(self, title: str, problems: Sequence[CovwatchError]) -> None:
        if not problems:
            return
        self._write_blank_line()
        self._write_line(title)
        for problem in problems[: self.max_problems]:
            self._write_line(f'  {problem}')
        if len(problems) > self.max_problems:
            self._write_line(f'  ... and {len(problems) - self.max_problems} more')

    def _write_delta(self, result: CycleResult) -> None:
        by_file = result.delta.by_file()
        if not by_file:
            return
        self._write_blank_line()
        self._write_line('Coverage:')
        width = max(len(path) for path in by_file)
        for path, (gained, lost) in by_file.items():
            self._write_line(f'  {path:<{width}}  +{gained} / -{lost}')

    def _write_header(self, title: str) -> None:
        """Write the report header."""
        border_len = max((self.BORDER_WIDTH - len(title)) // 2, 3)
        self._write_line(f'{self.BORDER_CHAR * border_len}{title}{self.BORDER_CHAR * border_len}')

    def _write_footer(self) -> None:
        """Write the report footer."""
        self._write_line(self.BORDER_CHAR * self.BORDER_WIDTH)

    def _write_blank_line(self) -> None:
        """Write a blank line."""
        self.output.write('\n')

    def _write_line(self, text: str) -> None:
        """Write a line of text followed by newline."""
        self.output.write(text + '\n')
