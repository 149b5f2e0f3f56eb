"""Down command for the devcontainer runner."""

import click

from ...core.orchestrator import LifecycleOrchestrator
from ...services.exceptions import DevcontainerError
from ..helpers import exit_with_error, get_runtime, load_environment


@click.command()
@click.pass_context
def down(ctx):
    """Stop the containers of the environment"""
    try:
        config, plan = load_environment(ctx)
        orchestrator = LifecycleOrchestrator(get_runtime(ctx), config, plan)
        result = orchestrator.down()
    except DevcontainerError as e:
        exit_with_error(ctx, e)

    if result.stopped:
        for service in result.stopped:
            click.echo(f"Stopped {service}")
    else:
        click.echo(f"No running containers for {result.environment_label}")
