"""Tests for the up command."""

from unittest.mock import patch

from devcontainer_runner.cli.main import cli
from devcontainer_runner.core.constants import WAIT_APPLICATION, WAIT_CONTAINER
from devcontainer_runner.core.orchestrator import LifecycleOrchestrator
from devcontainer_runner.services.exceptions import RuntimeUnavailable

UP = ['up', '--no-launch', '--no-wait', '--poll-interval', '0']
UP_ATTACHED = ['up', '--no-launch', '--poll-interval', '0']


@patch('devcontainer_runner.cli.helpers.DockerService')
def test_up_creates_environment(mock_docker, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project({
        "image": "alpine",
        "appPort": "8080:80",
        "postCreateCommand": "make setup",
    })

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP)

    assert result.exit_code == 0, result.output
    assert "Created environment my-app-" in result.output
    assert "Hooks run: postCreate" in result.output
    assert "80 -> localhost:8080" in result.output
    assert "ran /bin/sh -c make setup" in result.output
    assert fake_runtime.created_count() == 1


@patch('devcontainer_runner.cli.helpers.DockerService')
def test_up_reuses_environment(mock_docker, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project({"image": "alpine", "postCreateCommand": "make setup"})

    cli_runner.invoke(cli, ['--path', str(project)] + UP)
    result = cli_runner.invoke(cli, ['--path', str(project)] + UP)

    assert result.exit_code == 0
    assert "Reusing environment" in result.output
    assert fake_runtime.created_count() == 1
    assert fake_runtime.hook_runs().count(("/bin/sh", "-c", "make setup")) == 1


@patch('devcontainer_runner.cli.helpers.DockerService')
def test_hook_failure_is_a_warning(mock_docker, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    fake_runtime.exit_codes[("/bin/sh", "-c", "exit 3")] = 3
    project = make_project({"image": "alpine", "postStartCommand": "exit 3"})

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP)

    assert result.exit_code == 0
    assert "Warning: postStart hook failed with exit code 3" in result.stderr


@patch('devcontainer_runner.cli.helpers.DockerService')
def test_runtime_unavailable(mock_docker, cli_runner, make_project):
    mock_docker.side_effect = RuntimeUnavailable("Cannot connect to the Docker daemon: refused")
    project = make_project({"image": "alpine"})

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP)

    assert result.exit_code == 5
    assert "Cannot connect to the Docker daemon" in result.stderr


@patch('devcontainer_runner.cli.helpers.DockerService')
def test_unknown_compose_service(mock_docker, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project(
        {"dockerComposeFile": "docker-compose.yml", "service": "web"},
        files={"docker-compose.yml": {"services": {"app": {"image": "alpine"}}}},
    )

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP)

    assert result.exit_code == 4
    assert fake_runtime.calls == []


@patch('devcontainer_runner.cli.helpers.DockerService')
def test_interrupt(mock_docker, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    fake_runtime.exec_errors[("/bin/sh", "-c", "sleep 100")] = KeyboardInterrupt()
    project = make_project({"image": "alpine", "postCreateCommand": "sleep 100"})

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP)

    assert result.exit_code == 130
    assert "containers were left in place" in result.stderr


@patch.object(LifecycleOrchestrator, 'wait', return_value=WAIT_APPLICATION)
@patch('devcontainer_runner.cli.helpers.DockerService')
def test_session_end_stops_container(mock_docker, mock_wait, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project({"image": "alpine", "shutdownAction": "stopContainer"})

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP_ATTACHED)

    assert result.exit_code == 0, result.output
    mock_wait.assert_called_once()
    assert "Stopped default" in result.output
    assert ("stop", "default") in fake_runtime.calls


@patch.object(LifecycleOrchestrator, 'wait', side_effect=KeyboardInterrupt)
@patch('devcontainer_runner.cli.helpers.DockerService')
def test_interrupted_session_leaves_container(mock_docker, mock_wait, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project({"image": "alpine"})

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP_ATTACHED)

    assert result.exit_code == 0, result.output
    assert "Leaving my-app-" in result.output
    assert "(shutdownAction: none)" in result.output
    assert not any(call[0] == "stop" for call in fake_runtime.calls)


@patch.object(LifecycleOrchestrator, 'wait', return_value=WAIT_CONTAINER)
@patch('devcontainer_runner.cli.helpers.DockerService')
def test_stopped_container_ends_session(mock_docker, mock_wait, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project({"image": "alpine", "shutdownAction": "stopContainer"})

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP_ATTACHED)

    assert result.exit_code == 0, result.output
    assert "Container has stopped" in result.output
    assert not any(call[0] == "stop" for call in fake_runtime.calls)


@patch.object(LifecycleOrchestrator, 'wait')
@patch('devcontainer_runner.cli.helpers.DockerService')
def test_no_wait_returns_immediately(mock_docker, mock_wait, cli_runner, make_project, fake_runtime):
    mock_docker.return_value = fake_runtime
    project = make_project({"image": "alpine", "shutdownAction": "stopContainer"})

    result = cli_runner.invoke(cli, ['--path', str(project)] + UP)

    assert result.exit_code == 0
    mock_wait.assert_not_called()
    assert not any(call[0] == "stop" for call in fake_runtime.calls)
