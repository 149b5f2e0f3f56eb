"""Up command for the devcontainer runner."""

import click
from rich.console import Console

from ...core.constants import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_READY_TIMEOUT,
    EXIT_INTERRUPTED,
    WAIT_CONTAINER,
)
from ...core.orchestrator import LifecycleOrchestrator
from ...services.exceptions import DevcontainerError
from ..helpers import exit_with_error, get_runtime, load_environment, print_warnings


@click.command()
@click.option('--timeout', type=click.FloatRange(min=0), default=DEFAULT_READY_TIMEOUT,
              show_default=True, help='Seconds to wait for the containers to run')
@click.option('--poll-interval', type=click.FloatRange(min=0), default=DEFAULT_POLL_INTERVAL,
              show_default=True, help='Seconds between readiness checks')
@click.option('--no-launch', is_flag=True, help='Do not start the configured application')
@click.option('--wait/--no-wait', default=True, show_default=True,
              help='Stay attached until the application exits, the container stops or Ctrl-C')
@click.pass_context
def up(ctx, timeout, poll_interval, no_launch, wait):
    """Create or reuse the environment and run its lifecycle hooks"""
    console = Console()

    try:
        config, plan = load_environment(ctx)
        runtime = get_runtime(ctx)
        orchestrator = LifecycleOrchestrator(
            runtime,
            config,
            plan,
            ready_timeout=timeout,
            poll_interval=poll_interval,
        )
        result = orchestrator.up(launch=not no_launch)
    except DevcontainerError as e:
        exit_with_error(ctx, e)
    except KeyboardInterrupt:
        click.echo("Interrupted; containers were left in place", err=True)
        ctx.exit(EXIT_INTERRUPTED)

    action = "Created" if result.created else "Reusing"
    console.print(
        f"[green]{action} environment {result.environment_label}[/green] "
        f"(container {result.primary.ref.id[:12]})",
        highlight=False,
        soft_wrap=True,
    )
    if result.hooks_run:
        console.print(f"Hooks run: {', '.join(result.hooks_run)}", highlight=False, soft_wrap=True)
    for mapping in sorted(result.port_mappings, key=lambda m: m.container_port):
        console.print(f"  {mapping.container_port} -> {mapping.address}", highlight=False, soft_wrap=True)
    if result.application_port is not None:
        console.print(f"Application port: {result.application_port}", highlight=False, soft_wrap=True)
    if result.application is not None:
        console.print(f"Application started (pid {result.application.pid})", highlight=False, soft_wrap=True)

    print_warnings(result.warnings)

    if not wait:
        return

    console.print("Attached; press Ctrl-C to detach", highlight=False, soft_wrap=True)
    try:
        reason = orchestrator.wait(result)
    except KeyboardInterrupt:
        reason = None
        click.echo("Interrupted", err=True)
    except DevcontainerError as e:
        exit_with_error(ctx, e)

    if reason == WAIT_CONTAINER:
        console.print("Container has stopped; nothing to shut down", highlight=False, soft_wrap=True)
        return
    if not orchestrator.shutdown_requested():
        console.print(
            f"Leaving {result.environment_label} running (shutdownAction: {config.shutdown_action})",
            highlight=False,
            soft_wrap=True,
        )
        return

    try:
        down_result = orchestrator.down()
    except DevcontainerError as e:
        exit_with_error(ctx, e)
    for service in down_result.stopped:
        console.print(f"Stopped {service}", highlight=False, soft_wrap=True)
