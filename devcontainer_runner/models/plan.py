"""Provisioning plan and runtime observation models."""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..core.constants import LABEL_SERVICE, LOCAL_ADDRESS
from .config import ContainerSource, MountSpec


class ContainerStatus(Enum):
    """Container status as reported by the runtime."""
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    MISSING = "missing"

    @classmethod
    def from_runtime(cls, state: Optional[str]) -> "ContainerStatus":
        """Map a docker state string onto the statuses we track."""
        if state is None:
            return cls.MISSING
        state = state.lower()
        if state in ("running", "restarting"):
            return cls.RUNNING
        if state == "created":
            return cls.CREATED
        if state in ("exited", "paused", "dead", "removing", "stopped"):
            return cls.STOPPED
        return cls.MISSING


class ContainerRef(BaseModel):
    """Handle on a container known to the runtime."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    service: str


class ContainerInfo(BaseModel):
    """Result of inspecting a container."""

    model_config = ConfigDict(frozen=True)

    ref: ContainerRef
    status: ContainerStatus
    # container port -> published host port (None when exposed but not published)
    published_ports: Dict[int, Optional[int]] = Field(default_factory=dict)
    labels: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.status is ContainerStatus.RUNNING


class ContainerSpec(BaseModel):
    """Everything needed to create the primary container of an image/build topology."""

    model_config = ConfigDict(frozen=True)

    image: str
    name: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    env: Dict[str, str] = Field(default_factory=dict)
    mounts: Tuple[MountSpec, ...] = ()
    # container port -> host port
    port_bindings: Dict[int, int] = Field(default_factory=dict)
    command: Optional[List[str]] = None
    working_dir: Optional[str] = None


class ProvisionPlan(BaseModel):
    """What to provision for one invocation, and how to recognise it later."""

    model_config = ConfigDict(frozen=True)

    source: ContainerSource
    environment_label: str
    labels: Dict[str, str]
    # primary service first, then runServices in configuration order
    services: Tuple[str, ...]
    image: Optional[str] = None
    container_name: Optional[str] = None

    @property
    def primary_service(self) -> str:
        return self.services[0]

    @property
    def aux_services(self) -> Tuple[str, ...]:
        return self.services[1:]

    @property
    def project_name(self) -> str:
        """Compose project name."""
        return self.environment_label

    @property
    def is_compose(self) -> bool:
        return self.source.kind == "compose"

    def labels_for(self, service: str) -> Dict[str, str]:
        labels = dict(self.labels)
        labels[LABEL_SERVICE] = service
        return labels


class ActivePortMapping(BaseModel):
    """A port reachable on the host that leads into the environment."""

    model_config = ConfigDict(frozen=True)

    container_port: int
    host_port: int
    host_address: str = LOCAL_ADDRESS
    service: str

    @property
    def address(self) -> str:
        return f"{self.host_address}:{self.host_port}"
