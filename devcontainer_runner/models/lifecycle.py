"""Lifecycle state machine models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Set

from .plan import ActivePortMapping, ContainerInfo


class StateKind(Enum):
    """Lifecycle state enumeration."""
    RESOLVING = "resolving"
    PROVISIONING = "provisioning"
    WAITING_READY = "waiting_ready"
    RUNNING_HOOKS = "running_hooks"
    FORWARDING_PORTS = "forwarding_ports"
    ATTACHABLE = "attachable"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class LifecycleState:
    """Current orchestrator state; ``phase`` and ``cause`` qualify hooks and failures."""
    kind: StateKind
    phase: Optional[str] = None
    cause: Optional[BaseException] = field(default=None, compare=False)

    def __str__(self) -> str:
        if self.kind is StateKind.RUNNING_HOOKS:
            return f"RunningHooks({self.phase})"
        if self.kind is StateKind.FAILED:
            return f"Failed({type(self.cause).__name__ if self.cause else 'unknown'})"
        return self.kind.name.title().replace("_", "")


RESOLVING = LifecycleState(StateKind.RESOLVING)
PROVISIONING = LifecycleState(StateKind.PROVISIONING)
WAITING_READY = LifecycleState(StateKind.WAITING_READY)
FORWARDING_PORTS = LifecycleState(StateKind.FORWARDING_PORTS)
ATTACHABLE = LifecycleState(StateKind.ATTACHABLE)
STOPPING = LifecycleState(StateKind.STOPPING)
STOPPED = LifecycleState(StateKind.STOPPED)


def running_hooks(phase: str) -> LifecycleState:
    return LifecycleState(StateKind.RUNNING_HOOKS, phase=phase)


def failed(cause: BaseException) -> LifecycleState:
    return LifecycleState(StateKind.FAILED, cause=cause)


@dataclass
class UpResult:
    """Outcome of a successful ``up``."""
    environment_label: str
    primary: ContainerInfo
    created: bool  # primary container did not exist before this invocation
    hooks_run: List[str] = field(default_factory=list)
    port_mappings: Set[ActivePortMapping] = field(default_factory=set)
    warnings: List[Exception] = field(default_factory=list)
    application: Optional[Any] = None  # subprocess.Popen of the launched client
    application_port: Optional[int] = None  # host port reserved for the application


@dataclass
class DownResult:
    """Outcome of a ``down``."""
    environment_label: str
    stopped: List[str] = field(default_factory=list)
