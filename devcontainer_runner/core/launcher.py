"""Spawning of the external application attached to an environment."""

import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set

from ..models.config import ApplicationConfig, ResolvedConfig
from ..models.plan import ActivePortMapping
from ..services.exceptions import LaunchFailed
from .constants import ENV_APPLICATION_PORT, ENV_CONTAINER_ID, ENV_PROJECT

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Za-z]+)(?::([^}]*))?\}")


@dataclass
class LaunchContext:
    """Live values of an attachable environment."""
    config: ResolvedConfig
    environment_label: str
    container_id: str
    port_mappings: Set[ActivePortMapping] = field(default_factory=set)
    application_port: Optional[int] = None

    def forwarded(self, container_port: int) -> Optional[ActivePortMapping]:
        for mapping in self.port_mappings:
            if mapping.container_port == container_port:
                return mapping
        return None


class ApplicationLauncher:
    """Starts the configured application as a detached host process."""

    def __init__(self, popen: Callable[..., subprocess.Popen] = subprocess.Popen):
        self._popen = popen

    def launch(
        self, application: Optional[ApplicationConfig], context: LaunchContext
    ) -> Optional[subprocess.Popen]:
        """Substitute placeholders and spawn the application without waiting for it.

        Returns:
            The process handle, or None when no application is configured

        Raises:
            LaunchFailed: If a placeholder cannot be resolved or the process cannot start
        """
        if application is None:
            return None

        argv = self.substitute(application.cmd.exec_argv(), context)
        logger.info(f"Launching application: {' '.join(argv)}")
        try:
            process = self._popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
                cwd=str(context.config.project_path),
                env=self.build_env(context),
            )
        except OSError as e:
            raise LaunchFailed(f"{argv[0]}: {e.strerror or e}") from e

        logger.debug(f"Application started with pid {process.pid}")
        return process

    def substitute(self, argv: Sequence[str], context: LaunchContext) -> List[str]:
        return [PLACEHOLDER_PATTERN.sub(lambda m: self._resolve(m, context), arg) for arg in argv]

    @staticmethod
    def build_env(context: LaunchContext) -> Dict[str, str]:
        config = context.config
        env = dict(os.environ)
        env.update(config.remote_env)
        env[ENV_PROJECT] = config.project_name
        env[ENV_CONTAINER_ID] = context.container_id
        if context.application_port is not None:
            env[ENV_APPLICATION_PORT] = str(context.application_port)
        return env

    @staticmethod
    def _resolve(match: "re.Match[str]", context: LaunchContext) -> str:
        name, argument = match.group(1), match.group(2)
        config = context.config

        if argument is None:
            values = {
                "containerId": context.container_id,
                "containerWorkspaceFolder": config.workspace_folder,
                "localWorkspaceFolder": str(config.project_path),
                "environmentLabel": context.environment_label,
            }
            if context.application_port is not None:
                values["applicationPort"] = str(context.application_port)
            if name in values:
                return values[name]
        elif name in ("forwardedAddress", "forwardedPort"):
            try:
                port = int(argument)
            except ValueError:
                raise LaunchFailed(f"invalid port in placeholder {match.group(0)}") from None
            mapping = context.forwarded(port)
            if mapping is None:
                raise LaunchFailed(f"port {port} is not forwarded ({match.group(0)})")
            return mapping.address if name == "forwardedAddress" else str(mapping.host_port)

        raise LaunchFailed(f"unknown placeholder {match.group(0)}")
