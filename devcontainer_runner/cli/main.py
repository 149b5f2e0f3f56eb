"""Main CLI entry point for the devcontainer runner."""

from pathlib import Path

import click

from ..core.constants import CONFIG_FILE_NAME
from .commands.config import config
from .commands.down import down
from .commands.status import status
from .commands.up import up
from .helpers import CliSettings, configure_logging


@click.group()
@click.option('--path', '-c', type=click.Path(file_okay=False, path_type=Path),
              help='Project directory (default: current directory)')
@click.option('--config-file', default=CONFIG_FILE_NAME, show_default=True,
              help='Config file name inside .devcontainer, or an absolute path')
@click.option('--user-settings', type=click.Path(dir_okay=False, path_type=Path),
              help='User settings file (default: ~/.config/devcontainer.json)')
@click.option('--no-user-settings', '-s', is_flag=True, help='Ignore the user settings file')
@click.option('--host', '-a', help='Docker daemon address (default: DOCKER_HOST)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.version_option(package_name='devcontainer-runner')
@click.pass_context
def cli(ctx, path, config_file, user_settings, no_user_settings, host, verbose):
    """Devcontainer Runner - Run devcontainer.json environments without an editor"""
    configure_logging(verbose)
    ctx.obj = CliSettings(
        path=path,
        config_file=config_file,
        user_settings=user_settings,
        no_user_settings=no_user_settings,
        host=host,
    )


# Register commands
cli.add_command(up)
cli.add_command(down)
cli.add_command(down, name='stop')
cli.add_command(status)
cli.add_command(config)


if __name__ == '__main__':
    cli()
