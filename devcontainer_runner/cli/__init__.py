"""Command line interface for the devcontainer runner."""
