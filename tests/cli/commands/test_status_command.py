"""Tests for the status command."""

from unittest.mock import patch

from devcontainer_runner.cli.main import cli


@patch('devcontainer_runner.cli.helpers.DockerService')
def test_status_table(mock_docker, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project({"image": "alpine", "appPort": 3000})
    cli_runner.invoke(cli, ['--path', str(project), 'up', '--no-launch', '--no-wait', '--poll-interval', '0'])

    result = cli_runner.invoke(cli, ['--path', str(project), 'status'])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0].startswith("Environment: my-app-")
    assert "SERVICE" in lines[1] and "PORTS" in lines[1]
    assert "default" in result.output
    assert "running" in result.output
    assert "3000->3000" in result.output


@patch('devcontainer_runner.cli.helpers.DockerService')
def test_status_without_containers(mock_docker, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project({"image": "alpine"})

    result = cli_runner.invoke(cli, ['--path', str(project), 'status'])

    assert result.exit_code == 0
    assert "No containers found for my-app-" in result.output
