"""Configuration for the execution worker pool.

Example:
    >>> config = PoolConfig(max_workers=4)
    >>> config.max_workers
    4
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from pytest_covwatch.config import CovwatchConfig


def _default_max_workers() -> int:
    """Return the default number of workers."""
    return os.cpu_count() or 4


@dataclass(frozen=True, eq=True)
class PoolConfig:
    """Configuration for the execution worker pool.

    Per-unit timeouts belong to the runner, not the pool.

    Attributes:
        max_workers: Maximum number of units run at the same time. Defaults to CPU count.
        poll_interval: Seconds between checks of the cancel event while waiting.
    """

    max_workers: int = field(default_factory=_default_max_workers)
    poll_interval: float = 0.1

    def __post_init__(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid.
        """
        if self.max_workers <= 0:
            msg = f'max_workers must be positive, got {self.max_workers}'
            raise ValueError(msg)

        if self.poll_interval <= 0:
            msg = f'poll_interval must be positive, got {self.poll_interval}'
            raise ValueError(msg)

    @classmethod
    def from_config(cls, config: CovwatchConfig) -> PoolConfig:
        """Build pool settings from the project configuration."""
        if config.workers is None:
            return cls()
        return cls(max_workers=config.workers)
