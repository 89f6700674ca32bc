"""Run a single pytest test unit under coverage.py in a subprocess.

Each unit gets its own interpreter and its own coverage data file, so runs on
different worker threads never share measurement state:

    python -m coverage run --data-file=<tmp>/.coverage [--source=...] \\
        -m pytest <node id> -p no:cacheprovider -p no:cov -q

pytest exit codes 0 (passed) and 1 (tests failed) yield a record. Any other
exit code (collection error, usage error, no tests collected, interrupted),
a timeout, or a failure to start the interpreter raises ExecutionError.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
import subprocess
import sys
import tempfile
import time
from types import MappingProxyType
from typing import TYPE_CHECKING

import pytest

from pytest_covwatch.coverage.collector import CoverageCollector
from pytest_covwatch.errors import ExecutionError
from pytest_covwatch.execution.record import ExecutionRecord, ExecutionStatus


if TYPE_CHECKING:
    from collections.abc import Sequence

    from pytest_covwatch.discovery.unit import TestUnit


logger = logging.getLogger(__name__)

_RECORDED_EXIT_CODES = {
    pytest.ExitCode.OK: ExecutionStatus.PASSED,
    pytest.ExitCode.TESTS_FAILED: ExecutionStatus.FAILED,
}
_OUTPUT_TAIL_LINES = 15


class CoverageRunner:
    """TestExecutor that runs pytest node ids under coverage.py.

    Attributes:
        rootdir: Project root the tests run in.
        timeout: Timeout in seconds for a single unit.
        source: Paths passed to coverage.py as --source.
    """

    def __init__(
        self,
        rootdir: Path,
        *,
        timeout: int = 30,
        source: Sequence[str] | None = None,
        python: str | None = None,
        pytest_args: Sequence[str] = (),
    ) -> None:
        """Create a runner.

        Args:
            rootdir: Project root; also the working directory of each run.
            timeout: Timeout in seconds for a single unit.
            source: coverage.py --source paths. Defaults to the project root.
            python: Interpreter to run. Defaults to the current one.
            pytest_args: Extra arguments appended to the pytest command line.
        """
        self.rootdir = rootdir
        self.timeout = timeout
        self.source = list(source) if source else ['.']
        self._python = python or sys.executable
        self._pytest_args = list(pytest_args)
        self._collector = CoverageCollector(rootdir)

    def build_command(self, unit: TestUnit, data_file: Path) -> list[str]:
        """Return the command line that runs ``unit`` writing coverage to ``data_file``."""
        return [
            self._python,
            '-m',
            'coverage',
            'run',
            f'--data-file={data_file}',
            f'--source={",".join(self.source)}',
            '-m',
            'pytest',
            unit.node_id,
            '-p',
            'no:cacheprovider',
            '-p',
            'no:cov',
            '-q',
            *self._pytest_args,
        ]

    def run(self, unit: TestUnit) -> ExecutionRecord:
        """Run ``unit`` and return its record.

        Raises:
            ExecutionError: If the run timed out, crashed, or pytest could not
                run the unit.
        """
        env = os.environ.copy()
        env.pop('COVERAGE_PROCESS_START', None)

        with tempfile.TemporaryDirectory(prefix='covwatch-') as tmp:
            data_file = Path(tmp) / '.coverage'
            command = self.build_command(unit, data_file)
            logger.debug('Running %s', unit.node_id)
            start_time = time.monotonic()
            try:
                completed = subprocess.run(  # noqa: S603
                    command,
                    cwd=self.rootdir,
                    env=env,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    check=False,
                )
            except subprocess.TimeoutExpired as exc:
                raise ExecutionError(unit.unit_id, f'timed out after {self.timeout}s', timed_out=True) from exc
            except OSError as exc:
                raise ExecutionError(unit.unit_id, f'could not start {self._python}: {exc}') from exc

            duration_ms = (time.monotonic() - start_time) * 1000
            status = _RECORDED_EXIT_CODES.get(_exit_code(completed.returncode))
            if status is None:
                raise ExecutionError(unit.unit_id, _describe_failure(completed))

            hits = self._collector.read_hits(data_file)

        return ExecutionRecord(
            unit_id=unit.unit_id,
            status=status,
            hits=MappingProxyType(hits),
            duration_ms=duration_ms,
        )


def _exit_code(returncode: int) -> pytest.ExitCode | int:
    try:
        return pytest.ExitCode(returncode)
    except ValueError:
        return returncode


def _describe_failure(completed: subprocess.CompletedProcess[str]) -> str:
    code = _exit_code(completed.returncode)
    label = code.name.lower().replace('_', ' ') if isinstance(code, pytest.ExitCode) else f'exit code {code}'
    output = (completed.stdout or '') + (completed.stderr or '')
    tail = '\n'.join(output.strip().splitlines()[-_OUTPUT_TAIL_LINES:])
    return f'{label}\n{tail}' if tail else label
