"""Tests for the top-level command group."""

from devcontainer_runner.cli.main import cli


def test_help_lists_commands(cli_runner):
    result = cli_runner.invoke(cli, ['--help'])

    assert result.exit_code == 0
    for command in ('up', 'down', 'stop', 'status', 'config'):
        assert command in result.output


def test_missing_config_exits_with_config_error(cli_runner, tmp_path):
    result = cli_runner.invoke(cli, ['--path', str(tmp_path), 'config'])

    assert result.exit_code == 3
    assert 'Config file does not exist' in result.stderr
