"""Core functionality for the devcontainer runner."""
