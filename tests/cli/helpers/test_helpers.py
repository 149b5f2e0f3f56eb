"""Tests for the CLI helpers."""

import json
import logging
from unittest.mock import patch

import click

from devcontainer_runner.cli.helpers import (
    CliSettings,
    configure_logging,
    format_ports,
    load_environment,
    print_table,
)


def test_format_ports():
    assert format_ports({80: 8080, 443: None, 22: 2222}) == "2222->22, 8080->80"
    assert format_ports({}) == "-"


def test_print_table(capsys):
    print_table(["SERVICE", "STATUS"], [["app", "running"]])

    output = capsys.readouterr().out
    assert "SERVICE" in output
    assert "app" in output


class TestConfigureLogging:
    @patch('logging.basicConfig')
    def test_verbose(self, mock_basic_config):
        configure_logging(verbose=True)

        assert mock_basic_config.call_args[1]["level"] == logging.DEBUG

    @patch('logging.basicConfig')
    def test_level_from_environment(self, mock_basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "info")

        configure_logging()

        assert mock_basic_config.call_args[1]["level"] == logging.INFO

    @patch('logging.basicConfig')
    def test_unknown_level_defaults_to_warning(self, mock_basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")

        configure_logging()

        assert mock_basic_config.call_args[1]["level"] == logging.WARNING


class TestLoadEnvironment:
    def test_user_settings_applied(self, make_project, tmp_path):
        project = make_project({"image": "alpine"})
        user_file = tmp_path / "user.json"
        user_file.write_text(json.dumps({"forwardPorts": [9000]}))
        ctx = click.Context(click.Command("test"), obj=CliSettings(path=project, user_settings=user_file))

        config, plan = load_environment(ctx)

        assert config.ports.forward_ports == (9000,)
        assert plan.primary_service == "default"

    def test_user_settings_ignored(self, make_project, tmp_path):
        project = make_project({"image": "alpine"})
        user_file = tmp_path / "user.json"
        user_file.write_text(json.dumps({"forwardPorts": [9000]}))
        settings = CliSettings(path=project, user_settings=user_file, no_user_settings=True)
        ctx = click.Context(click.Command("test"), obj=settings)

        config, _ = load_environment(ctx)

        assert config.ports.forward_ports == ()

    def test_found_from_subdirectory(self, make_project):
        project = make_project({"image": "alpine"})
        nested = project / "src"
        nested.mkdir()
        ctx = click.Context(click.Command("test"), obj=CliSettings(path=nested))

        config, _ = load_environment(ctx)

        assert config.project_path == project.resolve()
