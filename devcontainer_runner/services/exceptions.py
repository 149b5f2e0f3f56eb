"""Custom exceptions for the devcontainer runner."""

from typing import Optional, Sequence


class DevcontainerError(Exception):
    """Base exception for all devcontainer runner errors."""

    exit_code = 1
    fatal = True


class ConfigError(DevcontainerError):
    """Base exception for configuration resolution errors."""

    exit_code = 3


class ConfigNotFound(ConfigError):
    """Exception raised when the project configuration file is absent."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Config file does not exist: {path}")


class ConfigParseError(ConfigError):
    """Exception raised when a configuration document is malformed."""

    def __init__(self, location: str, detail: str):
        self.location = location
        self.detail = detail
        super().__init__(f"Could not parse {location}: {detail}")


class ConfigInvalid(ConfigError):
    """Exception raised when a configuration field is missing or has the wrong shape."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Config is not valid: '{field}': {reason}")


class UnknownService(DevcontainerError):
    """Exception raised when a compose service named in the config does not exist."""

    exit_code = 4

    def __init__(self, service: str, available: Sequence[str] = ()):
        self.service = service
        self.available = list(available)
        known = ", ".join(self.available) or "none"
        super().__init__(
            f"Service '{service}' is not defined in the compose file (available: {known})"
        )


class RuntimeClientError(DevcontainerError):
    """Base exception for container runtime operations."""


class RuntimeUnavailable(RuntimeClientError):
    """Exception raised when the container runtime cannot be reached."""

    exit_code = 5


class RuntimeRejected(RuntimeClientError):
    """Exception raised when the runtime is reachable but refuses an operation."""

    exit_code = 6

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ReadinessTimeout(DevcontainerError):
    """Exception raised when containers do not reach Running in time."""

    exit_code = 7

    def __init__(self, timeout: float, pending: Sequence[str] = ()):
        self.timeout = timeout
        self.pending = list(pending)
        super().__init__(
            f"Timed out after {timeout:g}s waiting for: {', '.join(self.pending) or 'containers'}"
        )


class HookFailed(DevcontainerError):
    """A lifecycle hook exited with a non-zero status."""

    fatal = False

    def __init__(self, phase: str, exit_code: Optional[int], detail: str = ""):
        self.phase = phase
        self.hook_exit_code = exit_code
        message = f"{phase} hook failed"
        if exit_code is not None:
            message += f" with exit code {exit_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class PortForwardingError(DevcontainerError):
    """Base exception for port forwarding problems."""

    fatal = False


class PortMappingConflict(PortForwardingError):
    """An existing container publishes a port differently than requested."""

    def __init__(self, container_port: int, requested: int, actual: Optional[int]):
        self.container_port = container_port
        self.requested = requested
        self.actual = actual
        actual_str = str(actual) if actual is not None else "nothing"
        super().__init__(
            f"Container port {container_port} should be published on host port "
            f"{requested} but the existing container publishes {actual_str}"
        )


class PortNotExposed(PortForwardingError):
    """A requested port is not published by any compose service."""

    def __init__(self, port: int):
        self.port = port
        super().__init__(f"Port {port} is not published by the compose services")


class LaunchFailed(DevcontainerError):
    """The external application could not be started."""

    fatal = False

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to spawn application: {reason}")


class InvalidTransition(DevcontainerError):
    """Exception raised on an illegal lifecycle state transition."""
