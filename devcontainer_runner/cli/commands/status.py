"""Status command for the devcontainer runner."""

import click

from ...services.exceptions import DevcontainerError
from ..helpers import exit_with_error, format_ports, get_runtime, load_environment, print_table


@click.command()
@click.pass_context
def status(ctx):
    """Show the containers of the environment"""
    try:
        _, plan = load_environment(ctx)
        runtime = get_runtime(ctx)
        infos = [runtime.inspect(ref) for ref in runtime.find_by_label(plan.environment_label)]
    except DevcontainerError as e:
        exit_with_error(ctx, e)

    if not infos:
        click.echo(f"No containers found for {plan.environment_label}")
        return

    # primary service first, then configuration order
    order = {service: index for index, service in enumerate(plan.services)}
    infos.sort(key=lambda info: order.get(info.ref.service, len(order)))

    click.echo(f"Environment: {plan.environment_label}")
    rows = [
        [info.ref.service, info.ref.id[:12], info.status.value, format_ports(info.published_ports)]
        for info in infos
    ]
    print_table(["SERVICE", "CONTAINER", "STATUS", "PORTS"], rows)
