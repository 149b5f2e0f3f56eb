"""Loading and merging of project and user configuration."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar, Union

import jstyleson
from pydantic import BaseModel, ValidationError

from ..models.config import (
    ApplicationConfig,
    BuildSource,
    Command,
    ComposeSource,
    Hooks,
    ImageSource,
    MountSpec,
    PortConfig,
    PortMapping,
    ResolvedConfig,
)
from ..models.devcontainer import ApplicationOptions, DevcontainerDocument, UserSettingsDocument
from ..services.exceptions import ConfigInvalid, ConfigNotFound, ConfigParseError
from ..utils.mounts import parse_mount, substitute_variables
from .constants import DEFAULT_WORKSPACE_FOLDER, DEVCONTAINER_DIR_NAME, SHUTDOWN_NONE

logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", bound=BaseModel)

_HOOK_FIELDS = ("postCreateCommand", "postStartCommand", "postAttachCommand")
# Union member tags pydantic appends to error locations
_UNION_TAGS = {"str", "int", "list[str]", "list[int]"}


def resolve(
    project_config_path: Union[str, Path],
    user_config_path: Optional[Union[str, Path]] = None,
    project_path: Optional[Path] = None,
) -> ResolvedConfig:
    """Load the project and user documents and merge them.

    Args:
        project_config_path: Path to the project ``devcontainer.json``
        user_config_path: Path to the user settings document; a missing file
            counts as an empty document
        project_path: Project root; defaults to the parent of the
            ``.devcontainer`` directory holding the config

    Returns:
        The resolved configuration

    Raises:
        ConfigNotFound: If the project document does not exist
        ConfigParseError: If a document is malformed
        ConfigInvalid: If a field is missing or has an unaccepted shape
    """
    project_config_path = Path(project_config_path).absolute()
    if not project_config_path.is_file():
        raise ConfigNotFound(project_config_path)

    logger.info(f"Loading project config: {project_config_path}")
    project_doc = _validate(
        DevcontainerDocument, load_document(project_config_path), project_config_path
    )
    project_doc.validate_sources()

    user_doc = UserSettingsDocument()
    if user_config_path is not None:
        user_config_path = Path(user_config_path).expanduser()
        if user_config_path.is_file():
            logger.info(f"Loading user settings: {user_config_path}")
            user_doc = _validate(
                UserSettingsDocument, load_document(user_config_path), user_config_path
            )
        else:
            logger.debug(f"No user settings at {user_config_path}")

    config_dir = project_config_path.parent
    if project_path is None:
        project_path = config_dir.parent if config_dir.name == DEVCONTAINER_DIR_NAME else config_dir

    return merge(project_doc, user_doc, config_dir=config_dir, project_path=project_path.absolute())


def load_document(path: Path) -> Dict[str, Any]:
    """Read a JSON document that may contain comments and trailing commas."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigNotFound(path) from e
    except OSError as e:
        raise ConfigParseError(str(path), str(e)) from e

    try:
        data = jstyleson.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigParseError(f"{path}:{e.lineno}:{e.colno}", e.msg) from e
    except ValueError as e:
        raise ConfigParseError(str(path), str(e)) from e

    if not isinstance(data, dict):
        raise ConfigParseError(str(path), "top-level value must be an object")
    return data


def merge(
    project: DevcontainerDocument,
    user: UserSettingsDocument,
    config_dir: Path,
    project_path: Path,
) -> ResolvedConfig:
    """Field-level merge; project values win over user values."""
    workspace_folder = project.workspace_folder or DEFAULT_WORKSPACE_FOLDER
    variables = {
        "localWorkspaceFolder": str(project_path),
        "localWorkspaceFolderBasename": project_path.name,
        "containerWorkspaceFolder": workspace_folder,
    }

    if project.workspace_mount:
        workspace_mount = parse_mount(
            substitute_variables(project.workspace_mount, variables), "workspaceMount"
        )
    else:
        workspace_mount = MountSpec(
            source=str(project_path),
            target=workspace_folder,
            type="bind",
            consistency="cached",
        )

    mounts = _merge_mounts(
        [parse_mount(substitute_variables(m, variables)) for m in project.mounts],
        [parse_mount(substitute_variables(m, variables)) for m in user.mounts],
    )

    app_port = _parse_app_port(project.app_port)
    forward_ports = _merge_ports(project.forward_ports, user.forward_ports)
    if app_port is not None:
        clashing = [p for p in forward_ports if p in (app_port.container, app_port.host)]
        if clashing:
            logger.warning(
                f"forwardPorts {clashing} overlap appPort {app_port.host}:{app_port.container}; "
                f"using appPort"
            )
            forward_ports = [p for p in forward_ports if p not in clashing]

    source = _resolve_source(project, config_dir)
    # compose services keep their own command unless asked otherwise
    override_command = project.override_command
    if override_command is None:
        override_command = source.kind != "compose"

    hooks = Hooks(
        post_create=_command(
            "postCreateCommand", _first(project.post_create_command, user.post_create_command)
        ),
        post_start=_command(
            "postStartCommand", _first(project.post_start_command, user.post_start_command)
        ),
        post_attach=_command(
            "postAttachCommand", _first(project.post_attach_command, user.post_attach_command)
        ),
    )

    return ResolvedConfig(
        name=project.name,
        project_path=project_path,
        config_dir=config_dir,
        workspace_folder=workspace_folder,
        workspace_mount=workspace_mount,
        source=source,
        mounts=tuple(mounts),
        env={**user.env, **project.env},
        remote_env=dict(project.remote_env),
        ports=PortConfig(app_port=app_port, forward_ports=tuple(forward_ports)),
        hooks=hooks,
        application=_application(_first(project.application, user.application)),
        override_command=override_command,
        shutdown_action=project.shutdown_action or SHUTDOWN_NONE,
    )


def _validate(model: Type[DocumentT], data: Dict[str, Any], path: Path) -> DocumentT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        loc = [str(p) for p in first["loc"] if str(p) not in _UNION_TAGS]
        field = ".".join(loc) or "<root>"
        reason = first["msg"]
        if loc and loc[0] in _HOOK_FIELDS:
            reason = "expected a string or an array of strings"
        raise ConfigInvalid(field, f"{reason} (in {path})") from e


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def _command(field: str, value: Optional[Union[str, Sequence[str]]]) -> Optional[Command]:
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            raise ConfigInvalid(field, "command must not be empty")
    elif not value or not value[0]:
        raise ConfigInvalid(field, "command must not be empty")
    return Command.from_value(value)


def _application(options: Optional[ApplicationOptions]) -> Optional[ApplicationConfig]:
    if options is None:
        return None
    return ApplicationConfig(cmd=_command("application.cmd", options.cmd))


def _resolve_source(project: DevcontainerDocument, config_dir: Path):
    if project.image is not None:
        return ImageSource(ref=_normalize_image_ref(project.image.strip()))

    if project.build is not None:
        context = config_dir / (project.build.context or ".")
        return BuildSource(
            dockerfile=config_dir / project.build.dockerfile,
            context=context,
            args=dict(project.build.args),
            target=project.build.target,
        )

    primary = project.service.strip()
    aux = [s for s in _dedupe(project.run_services) if s != primary]
    return ComposeSource(
        files=tuple(config_dir / f for f in project.compose_files()),
        primary_service=primary,
        aux_services=tuple(aux),
    )


def _normalize_image_ref(ref: str) -> str:
    """Pin untagged references to ``latest`` so a pull fetches one tag."""
    if "@" in ref:
        return ref
    last_component = ref.rsplit("/", 1)[-1]
    if ":" in last_component:
        return ref
    return f"{ref}:latest"


def _parse_app_port(value: Optional[Union[int, str]]) -> Optional[PortMapping]:
    if value is None:
        return None

    try:
        if isinstance(value, int):
            return PortMapping(host=value, container=value)

        host, sep, container = value.strip().partition(":")
        if not sep:
            container = host
        return PortMapping(host=int(host), container=int(container))
    except (ValueError, ValidationError) as e:
        raise ConfigInvalid("appPort", f"expected a port or 'host:container', got {value!r}") from e


def _merge_ports(project_ports: Iterable[int], user_ports: Iterable[int]) -> List[int]:
    ports = _dedupe([*project_ports, *user_ports])
    for port in ports:
        if not 1 <= port <= 65535:
            raise ConfigInvalid("forwardPorts", f"port out of range: {port}")
    return ports


def _merge_mounts(project_mounts: List[MountSpec], user_mounts: List[MountSpec]) -> List[MountSpec]:
    merged: Dict[str, MountSpec] = {}
    for mount in project_mounts:
        merged.setdefault(mount.target, mount)
    for mount in user_mounts:
        if mount.target in merged:
            logger.debug(f"Ignoring user mount for {mount.target}: overridden by project")
            continue
        merged[mount.target] = mount
    return list(merged.values())


def _dedupe(values: Iterable) -> list:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
