"""Service layer over the container runtime."""

from .docker_service import DockerService
from .runtime_client import RuntimeClient
from .exceptions import (
    DevcontainerError,
    ConfigError,
    ConfigNotFound,
    ConfigParseError,
    ConfigInvalid,
    UnknownService,
    RuntimeClientError,
    RuntimeUnavailable,
    RuntimeRejected,
    ReadinessTimeout,
    HookFailed,
    PortForwardingError,
    PortMappingConflict,
    PortNotExposed,
    LaunchFailed,
    InvalidTransition,
)

__all__ = [
    "DockerService",
    "RuntimeClient",
    "DevcontainerError",
    "ConfigError",
    "ConfigNotFound",
    "ConfigParseError",
    "ConfigInvalid",
    "UnknownService",
    "RuntimeClientError",
    "RuntimeUnavailable",
    "RuntimeRejected",
    "ReadinessTimeout",
    "HookFailed",
    "PortForwardingError",
    "PortMappingConflict",
    "PortNotExposed",
    "LaunchFailed",
    "InvalidTransition",
]
