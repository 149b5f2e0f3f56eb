"""Devcontainer Runner - Run devcontainer.json environments without an editor."""

__version__ = "0.1.0"

# Export main CLI for convenience
from .cli.main import cli

__all__ = ['cli']
