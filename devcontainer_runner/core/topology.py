"""Topology planning: turn a resolved configuration into a provisioning plan."""

import hashlib
import logging
import re
from pathlib import Path
from typing import List, Sequence

import yaml

from ..models.config import ComposeSource, ResolvedConfig
from ..models.plan import ProvisionPlan
from ..services.exceptions import ConfigInvalid, UnknownService
from .constants import (
    DEFAULT_SERVICE_NAME,
    IMAGE_PREFIX,
    LABEL_ENVIRONMENT,
    LABEL_MARKER,
    LABEL_PROJECT,
)

logger = logging.getLogger(__name__)


def environment_label(project_path: Path) -> str:
    """Stable identifier for the environment of a project directory.

    The readable prefix comes from the directory name, the suffix from a hash
    of the absolute path so that two directories never share a label.
    """
    absolute = str(Path(project_path).absolute())
    digest = hashlib.sha256(absolute.encode("utf-8")).hexdigest()[:12]
    slug = re.sub(r"[^a-z0-9]+", "-", Path(absolute).name.lower()).strip("-") or "project"
    return f"{slug}-{digest}"


def plan(config: ResolvedConfig) -> ProvisionPlan:
    """Expand the configured container source into a provisioning plan.

    Raises:
        UnknownService: If a compose service named in the config does not exist
        ConfigInvalid: If a compose file cannot be read
    """
    label = environment_label(config.project_path)
    labels = {
        LABEL_MARKER: "true",
        LABEL_ENVIRONMENT: label,
        LABEL_PROJECT: str(config.project_path),
    }
    source = config.source

    if source.kind == "image":
        result = ProvisionPlan(
            source=source,
            environment_label=label,
            labels=labels,
            services=(DEFAULT_SERVICE_NAME,),
            image=source.ref,
            container_name=label,
        )
    elif source.kind == "build":
        result = ProvisionPlan(
            source=source,
            environment_label=label,
            labels=labels,
            services=(DEFAULT_SERVICE_NAME,),
            image=f"{IMAGE_PREFIX}-{label}",
            container_name=label,
        )
    else:
        _check_compose_services(source)
        result = ProvisionPlan(
            source=source,
            environment_label=label,
            labels=labels,
            services=(source.primary_service, *source.aux_services),
        )

    logger.info(f"Planned {source.kind} topology {label} with services {list(result.services)}")
    return result


def compose_services(files: Sequence[Path]) -> List[str]:
    """Names of the services defined across the given compose files."""
    services: List[str] = []
    for path in files:
        try:
            with open(path, encoding="utf-8") as f:
                document = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigInvalid("dockerComposeFile", f"cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigInvalid("dockerComposeFile", f"cannot parse {path}: {e}") from e

        defined = document.get("services") if isinstance(document, dict) else None
        for name in defined or {}:
            if name not in services:
                services.append(name)
    return services


def _check_compose_services(source: ComposeSource) -> None:
    available = compose_services(source.files)
    for service in (source.primary_service, *source.aux_services):
        if service not in available:
            raise UnknownService(service, available)
