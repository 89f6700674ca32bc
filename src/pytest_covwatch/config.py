"""Configuration loading for pytest-covwatch.

This module reads configuration from pyproject.toml [tool.pytest-covwatch]
section and provides sensible defaults when configuration is absent.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import tomllib
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from pathlib import Path


DEFAULT_INCLUDE = ['*.py']
DEFAULT_TEST_FILES = ['test_*.py', '*_test.py']


@dataclass
class CovwatchConfig:
    """Configuration for pytest-covwatch.

    Attributes:
        include: fnmatch patterns for paths the watcher cares about.
        exclude: fnmatch patterns for paths to ignore even if included.
        test_files: File name patterns that hold test units (pytest's python_files).
        source: Paths passed to coverage.py as --source. None measures the project root.
        workers: Maximum number of tests run in parallel. None uses the CPU count.
        timeout: Timeout in seconds for a single test unit.
        debounce_ms: Quiet period after a file-system event before a cycle fires.
        state_dir: Directory (relative to the project root) for persisted state.
        abandon_on_change: Abandon an in-flight cycle when a new change arrives.
    """

    include: list[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: list[str] = field(default_factory=list)
    test_files: list[str] = field(default_factory=lambda: list(DEFAULT_TEST_FILES))
    source: list[str] | None = None
    workers: int | None = None
    timeout: int = 30
    debounce_ms: int = 2000
    state_dir: str = '.covwatch'
    abandon_on_change: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid.
        """
        for name in ('include', 'exclude', 'test_files'):
            _require_str_list(name, getattr(self, name))
        if self.source is not None:
            _require_str_list('source', self.source)
        if self.workers is not None:
            _require_int('workers', self.workers)
        _require_int('timeout', self.timeout)
        _require_int('debounce_ms', self.debounce_ms)
        if not isinstance(self.state_dir, str):
            msg = f'state_dir must be a string, got {self.state_dir!r}'
            raise ValueError(msg)
        if not isinstance(self.abandon_on_change, bool):
            msg = f'abandon_on_change must be true or false, got {self.abandon_on_change!r}'
            raise ValueError(msg)

        if self.workers is not None and self.workers <= 0:
            msg = f'workers must be positive, got {self.workers}'
            raise ValueError(msg)

        if self.timeout <= 0:
            msg = f'timeout must be positive, got {self.timeout}'
            raise ValueError(msg)

        if self.debounce_ms < 0:
            msg = f'debounce_ms must not be negative, got {self.debounce_ms}'
            raise ValueError(msg)


def _require_int(name: str, value: object) -> None:
    # bool is an int subclass but `timeout = true` is a mistake.
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f'{name} must be an integer, got {value!r}'
        raise ValueError(msg)


def _require_str_list(name: str, value: object) -> None:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        msg = f'{name} must be a list of strings, got {value!r}'
        raise ValueError(msg)


def load_config(rootdir: Path) -> CovwatchConfig:
    """Load configuration from pyproject.toml.

    Reads the [tool.pytest-covwatch] section from pyproject.toml in the
    given directory. Returns default configuration if the file or section
    does not exist.

    Args:
        rootdir: Directory containing pyproject.toml.

    Returns:
        CovwatchConfig with values from pyproject.toml or defaults.

    Raises:
        ValueError: If the section contains unknown keys or invalid values.
    """
    pyproject_path = rootdir / 'pyproject.toml'

    if not pyproject_path.exists():
        return CovwatchConfig()

    with pyproject_path.open('rb') as f:
        data = tomllib.load(f)

    tool_config: dict[str, Any] = data.get('tool', {}).get('pytest-covwatch', {})

    known = set(CovwatchConfig.__dataclass_fields__)
    unknown = sorted(key.replace('-', '_') for key in tool_config if key.replace('-', '_') not in known)
    if unknown:
        msg = f'Unknown [tool.pytest-covwatch] keys: {", ".join(unknown)}'
        raise ValueError(msg)

    return CovwatchConfig(**{key.replace('-', '_'): value for key, value in tool_config.items()})


def merge_configs(
    file_config: CovwatchConfig,
    cli_workers: int | None = None,
    cli_timeout: int | None = None,
    cli_debounce_ms: int | None = None,
    cli_source: str | None = None,
) -> CovwatchConfig:
    """Merge CLI arguments with file configuration.

    CLI arguments take precedence over pyproject.toml configuration.
    Empty strings are treated as not provided.

    Args:
        file_config: Configuration loaded from pyproject.toml.
        cli_workers: Worker count from --workers.
        cli_timeout: Per-test timeout from --timeout.
        cli_debounce_ms: Debounce delay from --debounce-ms.
        cli_source: Comma-separated coverage source paths from --source.

    Returns:
        CovwatchConfig with CLI values overriding file config where provided.
    """
    overrides: dict[str, Any] = {}
    if cli_workers is not None:
        overrides['workers'] = cli_workers
    if cli_timeout is not None:
        overrides['timeout'] = cli_timeout
    if cli_debounce_ms is not None:
        overrides['debounce_ms'] = cli_debounce_ms
    if cli_source and cli_source.strip():
        overrides['source'] = [s.strip() for s in cli_source.split(',') if s.strip()]

    return replace(file_config, **overrides)
