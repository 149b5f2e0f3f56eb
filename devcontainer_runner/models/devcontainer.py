"""Schema of the project and user configuration documents."""

from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

from ..core.constants import SHUTDOWN_ACTIONS
from ..services.exceptions import ConfigInvalid


CommandValue = Union[StrictStr, List[StrictStr]]


def _stringify_mapping(value: Any) -> Any:
    """Allow numbers and booleans as environment values."""
    if isinstance(value, dict):
        converted = {}
        for key, item in value.items():
            if isinstance(item, bool):
                converted[key] = "true" if item else "false"
            elif isinstance(item, (int, float)):
                converted[key] = str(item)
            else:
                converted[key] = item
        return converted
    return value


class BuildOptions(BaseModel):
    """The ``build`` object of a devcontainer document."""

    model_config = ConfigDict(extra="ignore")

    dockerfile: StrictStr = Field(validation_alias=AliasChoices("dockerfile", "dockerFile"))
    context: Optional[StrictStr] = None
    args: Dict[str, StrictStr] = Field(default_factory=dict)
    target: Optional[StrictStr] = None

    @field_validator("args", mode="before")
    @classmethod
    def stringify_args(cls, value: Any) -> Any:
        return _stringify_mapping(value)


class ApplicationOptions(BaseModel):
    """The ``application`` object: the external client to spawn."""

    model_config = ConfigDict(extra="ignore")

    cmd: CommandValue


class DevcontainerDocument(BaseModel):
    """Project-level ``devcontainer.json``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[StrictStr] = None
    image: Optional[StrictStr] = None
    build: Optional[BuildOptions] = None
    docker_compose_file: Optional[Union[StrictStr, List[StrictStr]]] = Field(
        None, alias="dockerComposeFile"
    )
    service: Optional[StrictStr] = None
    run_services: List[StrictStr] = Field(default_factory=list, alias="runServices")
    workspace_folder: Optional[StrictStr] = Field(None, alias="workspaceFolder")
    workspace_mount: Optional[StrictStr] = Field(None, alias="workspaceMount")
    mounts: List[StrictStr] = Field(default_factory=list)
    env: Dict[str, StrictStr] = Field(
        default_factory=dict, validation_alias=AliasChoices("env", "containerEnv")
    )
    remote_env: Dict[str, StrictStr] = Field(default_factory=dict, alias="remoteEnv")
    app_port: Optional[Union[StrictInt, StrictStr]] = Field(None, alias="appPort")
    forward_ports: List[StrictInt] = Field(default_factory=list, alias="forwardPorts")
    post_create_command: Optional[CommandValue] = Field(None, alias="postCreateCommand")
    post_start_command: Optional[CommandValue] = Field(None, alias="postStartCommand")
    post_attach_command: Optional[CommandValue] = Field(None, alias="postAttachCommand")
    application: Optional[ApplicationOptions] = None
    override_command: Optional[bool] = Field(None, alias="overrideCommand")
    shutdown_action: Optional[StrictStr] = Field(None, alias="shutdownAction")

    @field_validator("env", "remote_env", mode="before")
    @classmethod
    def stringify_env(cls, value: Any) -> Any:
        return _stringify_mapping(value)

    @field_validator("shutdown_action")
    @classmethod
    def normalize_shutdown_action(cls, value: Optional[str]) -> Optional[str]:
        """Accept any letter case, e.g. ``stopcontainer``."""
        if value is None:
            return None
        for action in SHUTDOWN_ACTIONS:
            if value.lower() == action.lower():
                return action
        raise ValueError(f"Invalid shutdown action '{value}'")

    def validate_sources(self) -> None:
        """Check that exactly one container source is configured.

        Raises:
            ConfigInvalid: If zero or several sources are given, or a source is blank
        """
        sources = [
            self.image is not None,
            self.docker_compose_file is not None,
            self.build is not None,
        ]
        if sum(sources) > 1:
            raise ConfigInvalid(
                "image", "Please specify only one of: image, dockerComposeFile or build"
            )
        if not any(sources):
            raise ConfigInvalid(
                "image", "Please specify at least one of: image, dockerComposeFile or build"
            )

        if self.image is not None and not self.image.strip():
            raise ConfigInvalid("image", f"Invalid image: '{self.image}'")

        if self.build is not None and not self.build.dockerfile.strip():
            raise ConfigInvalid("build.dockerfile", f"Invalid docker file: '{self.build.dockerfile}'")

        if self.docker_compose_file is not None:
            if isinstance(self.docker_compose_file, str):
                blank = not self.docker_compose_file.strip()
            else:
                blank = not self.docker_compose_file or any(
                    not f.strip() for f in self.docker_compose_file
                )
            if blank:
                raise ConfigInvalid("dockerComposeFile", "Invalid docker-compose file")
            if not self.service or not self.service.strip():
                raise ConfigInvalid("service", "A service is required with dockerComposeFile")

    def compose_files(self) -> List[str]:
        if self.docker_compose_file is None:
            return []
        if isinstance(self.docker_compose_file, str):
            return [self.docker_compose_file]
        return list(self.docker_compose_file)


class UserSettingsDocument(BaseModel):
    """User-level settings; only the overridable fields are read."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    application: Optional[ApplicationOptions] = None
    mounts: List[StrictStr] = Field(default_factory=list)
    env: Dict[str, StrictStr] = Field(
        default_factory=dict, validation_alias=AliasChoices("env", "envs")
    )
    post_create_command: Optional[CommandValue] = Field(None, alias="postCreateCommand")
    post_start_command: Optional[CommandValue] = Field(None, alias="postStartCommand")
    post_attach_command: Optional[CommandValue] = Field(None, alias="postAttachCommand")
    forward_ports: List[StrictInt] = Field(default_factory=list, alias="forwardPorts")

    @field_validator("env", mode="before")
    @classmethod
    def stringify_env(cls, value: Any) -> Any:
        return _stringify_mapping(value)
