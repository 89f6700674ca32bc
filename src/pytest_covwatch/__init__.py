"""pytest-covwatch: live incremental coverage for the tests you are writing.

pytest-covwatch watches a git working tree, notices when test functions are
added or changed, runs only those tests under coverage.py, and keeps a running
table of which tests cover which lines.

Example:
    Watch the current project::

        $ pytest-covwatch

    Run a single cycle against the last processed revision::

        $ pytest-covwatch --once
"""

from __future__ import annotations


__version__ = '0.3.0'
__all__ = ['__version__']
