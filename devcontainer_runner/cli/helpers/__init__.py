"""CLI Helper Functions for the devcontainer runner.

This module provides the helpers shared by the commands:
- Logging setup
- Resolving the project configuration and topology from the CLI options
- Connecting to the container runtime
- Consistent error reporting and table formatting
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, NoReturn, Optional, Sequence, Tuple

import click
from rich.console import Console
from rich.markup import escape
from tabulate import tabulate

from devcontainer_runner.core.config_resolver import resolve
from devcontainer_runner.core.constants import CONFIG_FILE_NAME, LOG_FORMAT, LOG_LEVEL_ENV
from devcontainer_runner.core.topology import plan as plan_topology
from devcontainer_runner.models.config import ResolvedConfig
from devcontainer_runner.models.plan import ProvisionPlan
from devcontainer_runner.services.docker_service import DockerService
from devcontainer_runner.services.exceptions import DevcontainerError
from devcontainer_runner.utils.path_finder import PathFinder


@dataclass
class CliSettings:
    """Options given to the top-level command."""
    path: Optional[Path] = None
    config_file: str = CONFIG_FILE_NAME
    user_settings: Optional[Path] = None
    no_user_settings: bool = False
    host: Optional[str] = None


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging once per process.

    ``--verbose`` selects DEBUG; otherwise ``LOG_LEVEL`` is honoured and
    WARNING is the default.
    """
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "WARNING").upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)


def get_settings(ctx: click.Context) -> CliSettings:
    settings = ctx.find_object(CliSettings)
    return settings if settings is not None else CliSettings()


def load_environment(ctx: click.Context) -> Tuple[ResolvedConfig, ProvisionPlan]:
    """Resolve the configuration and plan the topology for the selected project.

    Raises:
        DevcontainerError: If the configuration cannot be resolved or planned
    """
    settings = get_settings(ctx)
    project_root = PathFinder.find_project_root(settings.path)

    config_path = Path(settings.config_file)
    if not config_path.is_absolute():
        config_path = PathFinder.project_config_path(project_root, settings.config_file)

    user_path = None
    if not settings.no_user_settings:
        user_path = settings.user_settings or PathFinder.user_settings_path()

    config = resolve(config_path, user_path, project_path=project_root)
    return config, plan_topology(config)


def get_runtime(ctx: click.Context) -> DockerService:
    """Connect to the Docker daemon selected by ``--host``."""
    return DockerService(base_url=get_settings(ctx).host)


def exit_with_error(ctx: click.Context, error: DevcontainerError) -> NoReturn:
    """Print an error on stderr and exit with its code."""
    Console(stderr=True).print(f"[red]Error:[/red] {escape(str(error))}", highlight=False, soft_wrap=True)
    ctx.exit(error.exit_code)


def print_warnings(warnings: Sequence[Exception]) -> None:
    """Print non-fatal problems on stderr."""
    if not warnings:
        return
    console = Console(stderr=True)
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {escape(str(warning))}", highlight=False, soft_wrap=True)


def format_ports(published_ports: dict) -> str:
    """Render published ports as ``host->container`` pairs."""
    pairs = [
        f"{host}->{container}"
        for container, host in sorted(published_ports.items())
        if host is not None
    ]
    return ", ".join(pairs) or "-"


def print_table(headers: List[str], rows: List[List[Any]],
                tablefmt: str = "simple") -> None:
    """Print a table with project-wide defaults.

    Args:
        headers: Table headers
        rows: Table rows
        tablefmt: Table format (default: "simple")
    """
    table_str = tabulate(rows, headers=headers, tablefmt=tablefmt)
    click.echo(table_str)
