"""Utilities for the devcontainer runner."""

from .mounts import parse_mount, substitute_variables
from .path_finder import PathFinder
from .ports import request_open_port

__all__ = [
    'parse_mount',
    'substitute_variables',
    'PathFinder',
    'request_open_port',
]
