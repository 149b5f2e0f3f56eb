"""Resolved configuration models."""

from pathlib import Path
from typing import Annotated, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.constants import POST_ATTACH, POST_CREATE, POST_START, SHELL


class Command(BaseModel):
    """A hook or application command.

    A single string in the configuration is kept whole and run through the
    shell; an array is run verbatim.
    """

    model_config = ConfigDict(frozen=True)

    argv: Tuple[str, ...]
    via_shell: bool = False

    @classmethod
    def from_value(cls, value: Union[str, Sequence[str]]) -> "Command":
        if isinstance(value, str):
            return cls(argv=(value,), via_shell=True)
        return cls(argv=tuple(value), via_shell=False)

    def exec_argv(self) -> List[str]:
        """Argument vector to hand to the runtime or the OS."""
        if self.via_shell:
            return SHELL + [self.argv[0]]
        return list(self.argv)

    def display(self) -> str:
        return " ".join(self.argv)


class MountSpec(BaseModel):
    """A mount point for the primary container."""

    model_config = ConfigDict(frozen=True)

    target: str
    source: Optional[str] = None
    type: Literal["bind", "volume", "tmpfs"] = "bind"
    consistency: Optional[str] = None
    read_only: bool = False

    def to_compose(self) -> Dict[str, object]:
        """Long-syntax compose volume entry."""
        entry: Dict[str, object] = {"type": self.type, "target": self.target}
        if self.source:
            entry["source"] = self.source
        if self.consistency:
            entry["consistency"] = self.consistency
        if self.read_only:
            entry["read_only"] = True
        return entry


class PortMapping(BaseModel):
    """A host port published for a container port."""

    model_config = ConfigDict(frozen=True)

    host: int = Field(ge=1, le=65535)
    container: int = Field(ge=1, le=65535)


class PortConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_port: Optional[PortMapping] = None
    forward_ports: Tuple[int, ...] = ()

    def requested(self) -> List[PortMapping]:
        """All mappings to establish, ``appPort`` first."""
        mappings = []
        if self.app_port is not None:
            mappings.append(self.app_port)
        for port in self.forward_ports:
            mappings.append(PortMapping(host=port, container=port))
        return mappings


class ImageSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["image"] = "image"
    ref: str


class BuildSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["build"] = "build"
    dockerfile: Path
    context: Path
    args: Dict[str, str] = Field(default_factory=dict)
    target: Optional[str] = None


class ComposeSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["compose"] = "compose"
    files: Tuple[Path, ...]
    primary_service: str
    aux_services: Tuple[str, ...] = ()


ContainerSource = Annotated[
    Union[ImageSource, BuildSource, ComposeSource], Field(discriminator="kind")
]


class Hooks(BaseModel):
    model_config = ConfigDict(frozen=True)

    post_create: Optional[Command] = None
    post_start: Optional[Command] = None
    post_attach: Optional[Command] = None

    def get(self, phase: str) -> Optional[Command]:
        return {
            POST_CREATE: self.post_create,
            POST_START: self.post_start,
            POST_ATTACH: self.post_attach,
        }[phase]


class ApplicationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    cmd: Command


class ResolvedConfig(BaseModel):
    """Merged project and user configuration for one invocation."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    project_path: Path
    config_dir: Path
    workspace_folder: str
    workspace_mount: MountSpec
    source: ContainerSource
    mounts: Tuple[MountSpec, ...] = ()
    env: Dict[str, str] = Field(default_factory=dict)
    remote_env: Dict[str, str] = Field(default_factory=dict)
    ports: PortConfig = Field(default_factory=PortConfig)
    hooks: Hooks = Field(default_factory=Hooks)
    application: Optional[ApplicationConfig] = None
    override_command: bool = True
    shutdown_action: Literal["none", "stopContainer", "stopCompose"] = "none"

    @property
    def project_name(self) -> str:
        """Configured name, falling back to the project directory name."""
        return self.name or self.project_path.name
