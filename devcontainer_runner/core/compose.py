"""Generation of the compose override file for an environment."""

from typing import Any, Dict, Optional

import yaml

from ..models.config import ResolvedConfig
from ..models.plan import ProvisionPlan
from .constants import ENV_APPLICATION_PORT, KEEP_ALIVE_COMMAND, LABEL_APPLICATION_PORT


def build_compose_override(
    plan: ProvisionPlan, config: ResolvedConfig, application_port: Optional[int] = None
) -> Dict[str, Any]:
    """Compose document layered over the project's compose files.

    Every planned service gets the environment labels so it can be found
    again; only the primary service gets the workspace, mounts and env.
    Ports are left to the project's compose files, except the application
    port, which is published on the same host port and recorded in a label.
    """
    services: Dict[str, Dict[str, Any]] = {}
    for service in plan.services:
        services[service] = {"labels": plan.labels_for(service)}

    primary = services[plan.primary_service]
    primary["volumes"] = [
        mount.to_compose() for mount in (config.workspace_mount, *config.mounts)
    ]
    environment = dict(config.env)
    if application_port is not None:
        primary["labels"][LABEL_APPLICATION_PORT] = str(application_port)
        primary["ports"] = [f"{application_port}:{application_port}"]
        environment[ENV_APPLICATION_PORT] = str(application_port)
    if environment:
        primary["environment"] = environment
    if config.override_command:
        primary["command"] = list(KEEP_ALIVE_COMMAND)

    return {"services": services}


def dump_compose_override(override: Dict[str, Any]) -> str:
    return yaml.safe_dump(override, default_flow_style=False, sort_keys=False)
