"""Tests for the pytest-covwatch command line."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from pytest_covwatch import cli
from pytest_covwatch.errors import DiffError
from pytest_covwatch.snapshot.models import Revision, Snapshot
from pytest_covwatch.watch.cycle import CycleResult, CycleState


@pytest.mark.small
class TestBuildParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = cli.build_parser().parse_args([])

        assert args.root == Path.cwd()
        assert args.workers is None
        assert args.timeout is None
        assert args.debounce_ms is None
        assert args.source is None
        assert not args.once
        assert not args.reset
        assert not args.summary
        assert not args.verbose

    def test_all_options(self, tmp_path):
        args = cli.build_parser().parse_args(
            [
                '--root',
                str(tmp_path),
                '--workers',
                '4',
                '--timeout',
                '10',
                '--debounce-ms',
                '500',
                '--source',
                'src,lib',
                '--once',
                '--reset',
                '--summary',
                '-v',
            ]
        )

        assert args.root == tmp_path
        assert args.workers == 4
        assert args.timeout == 10
        assert args.debounce_ms == 500
        assert args.source == 'src,lib'
        assert args.once
        assert args.reset
        assert args.summary
        assert args.verbose

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.build_parser().parse_args(['--version'])

        assert exc_info.value.code == 0
        assert 'pytest-covwatch' in capsys.readouterr().out


@pytest.mark.small
class TestMainErrors:
    """Tests for startup failures."""

    def test_not_a_git_repository_exits_with_2(self, tmp_path):
        assert cli.main(['--root', str(tmp_path), '--once']) == 2

    def test_invalid_config_exits_with_2(self, tmp_path):
        (tmp_path / 'pyproject.toml').write_text('[tool.pytest-covwatch]\ntimeout = 0\n')

        assert cli.main(['--root', str(tmp_path), '--once']) == 2

    def test_wrongly_typed_config_exits_with_2(self, tmp_path, caplog):
        (tmp_path / 'pyproject.toml').write_text('[tool.pytest-covwatch]\ntimeout = "x"\n')

        with patch.object(cli, 'GitRepository'):
            assert cli.main(['--root', str(tmp_path), '--once']) == 2

        assert 'timeout must be an integer' in caplog.text

    def test_invalid_cli_value_exits_with_2(self, tmp_path):
        assert cli.main(['--root', str(tmp_path), '--workers', '0', '--once']) == 2


@pytest.mark.small
class TestMainOnce:
    """Tests for --once with the repository and cycle mocked out."""

    @pytest.fixture
    def repo(self):
        with patch.object(cli, 'GitRepository') as repo_class:
            repo_class.return_value.head.return_value = 'a' * 40
            yield repo_class.return_value

    def _result(self, state: CycleState) -> CycleResult:
        error = DiffError('index locked') if state is CycleState.FAILED else None
        return CycleResult(state=state, snapshot=Snapshot(Revision('a' * 40, sequence=1)), error=error)

    def test_committed_cycle_exits_with_0(self, tmp_path, repo, capsys):
        cycle = MagicMock()
        cycle.run.return_value = self._result(CycleState.COMMITTED)

        with patch.object(cli, '_build_cycle', return_value=cycle):
            assert cli.main(['--root', str(tmp_path), '--once', '--summary']) == 0

        out = capsys.readouterr().out
        assert 'pytest-covwatch cycle #1' in out
        assert 'No lines covered yet.' in out
        assert (tmp_path / '.covwatch' / 'snapshot.db').exists()

    def test_failed_cycle_exits_with_1(self, tmp_path, repo, capsys):
        cycle = MagicMock()
        cycle.run.return_value = self._result(CycleState.FAILED)

        with patch.object(cli, '_build_cycle', return_value=cycle):
            assert cli.main(['--root', str(tmp_path), '--once']) == 1

        assert 'Cycle failed: index locked' in capsys.readouterr().out

    def test_starts_from_head_without_stored_snapshot(self, tmp_path, repo):
        cycle = MagicMock()
        cycle.run.return_value = self._result(CycleState.COMMITTED)

        with patch.object(cli, '_build_cycle', return_value=cycle):
            cli.main(['--root', str(tmp_path), '--once'])

        snapshot = cycle.run.call_args.args[0]
        assert snapshot.revision == Revision('a' * 40)
