"""Parsing of devcontainer mount strings."""

from typing import Dict

from ..models.config import MountSpec
from ..services.exceptions import ConfigInvalid


MOUNT_TYPES = ("bind", "volume", "tmpfs")


def substitute_variables(value: str, variables: Dict[str, str]) -> str:
    """Replace ``${name}`` references with their values."""
    for name, replacement in variables.items():
        value = value.replace("${" + name + "}", replacement)
    return value


def parse_mount(value: str, field: str = "mounts") -> MountSpec:
    """Parse a mount in either ``key=value,...`` or ``source:target[:ro]`` form.

    Args:
        value: The mount string
        field: Configuration field reported on error

    Returns:
        The parsed mount

    Raises:
        ConfigInvalid: If the string is not a valid mount
    """
    if "," in value or value.startswith(("source=", "src=", "target=", "type=")):
        return _from_comma_string(value, field)
    return _from_colon_string(value, field)


def _from_colon_string(value: str, field: str) -> MountSpec:
    parts = value.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ConfigInvalid(field, f"Invalid mount point: {value}")
    read_only = len(parts) > 2 and parts[2] == "ro"
    return MountSpec(source=parts[0], target=parts[1], type="bind", read_only=read_only)


def _from_comma_string(value: str, field: str) -> MountSpec:
    attrs: Dict[str, object] = {}
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        if part in ("readonly", "ro"):
            attrs["read_only"] = True
            continue

        name, sep, attr_value = part.partition("=")
        if not sep:
            raise ConfigInvalid(field, f"Invalid mount point: {value}")

        if name in ("source", "src"):
            attrs["source"] = attr_value
        elif name in ("target", "dst", "destination"):
            attrs["target"] = attr_value
        elif name == "type":
            if attr_value not in MOUNT_TYPES:
                raise ConfigInvalid(field, f"Invalid mount point type: {attr_value}")
            attrs["type"] = attr_value
        elif name == "consistency":
            attrs["consistency"] = attr_value
        elif name in ("readonly", "ro"):
            attrs["read_only"] = attr_value.lower() in ("1", "true")
        else:
            raise ConfigInvalid(field, f"Invalid attr '{name}' for mount point: {value}")

    if not attrs.get("target"):
        raise ConfigInvalid(field, f"Mount point has no target: {value}")
    return MountSpec(**attrs)
