"""Config command for the devcontainer runner."""

import json

import click
from rich.console import Console

from ...services.exceptions import DevcontainerError
from ..helpers import exit_with_error, load_environment


@click.command()
@click.pass_context
def config(ctx):
    """Display the resolved configuration and planned topology"""
    try:
        resolved, plan = load_environment(ctx)
    except DevcontainerError as e:
        exit_with_error(ctx, e)

    document = {
        "config": resolved.model_dump(mode="json"),
        "plan": plan.model_dump(mode="json"),
    }
    Console().print_json(json.dumps(document))
