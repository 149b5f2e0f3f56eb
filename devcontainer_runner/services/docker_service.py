"""Docker implementation of the runtime client."""

import codecs
import logging
import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import docker
import docker.errors
from docker.models.containers import Container
from docker.types import Mount

from ..core.compose import dump_compose_override
from ..core.constants import (
    BUILD_TIMEOUT,
    COMPOSE_COMMAND,
    COMPOSE_COMMAND_ENV,
    COMPOSE_TIMEOUT,
    DEFAULT_SERVICE_NAME,
    LABEL_ENVIRONMENT,
    LABEL_SERVICE,
)
from ..models.config import BuildSource, MountSpec
from ..models.plan import ContainerInfo, ContainerRef, ContainerSpec, ContainerStatus
from .exceptions import RuntimeRejected, RuntimeUnavailable
from .runtime_client import OutputCallback, RuntimeClient

logger = logging.getLogger(__name__)

COMPOSE_PROJECT_LABEL = "com.docker.compose.project"
COMPOSE_SERVICE_LABEL = "com.docker.compose.service"


class DockerService(RuntimeClient):
    """Runtime client backed by the Docker daemon and the compose CLI."""

    def __init__(self, base_url: Optional[str] = None, compose_command: Optional[List[str]] = None):
        """Initialize Docker service and test connection.

        Args:
            base_url: Daemon address; the ``DOCKER_HOST`` environment is used when omitted
            compose_command: Compose CLI invocation, e.g. ``["docker", "compose"]``

        Raises:
            RuntimeUnavailable: If the daemon cannot be reached
        """
        self.base_url = base_url
        try:
            self.client = docker.DockerClient(base_url=base_url) if base_url else docker.from_env()
            self.client.ping()
        except docker.errors.DockerException as e:
            raise RuntimeUnavailable(f"Cannot connect to the Docker daemon: {e}") from e

        if compose_command is None:
            override = os.environ.get(COMPOSE_COMMAND_ENV)
            compose_command = shlex.split(override) if override else list(COMPOSE_COMMAND)
        self.compose_command = compose_command

    def find_by_label(self, environment_label: str) -> List[ContainerRef]:
        return [
            self._ref(container)
            for container in self._list_containers([f"{LABEL_ENVIRONMENT}={environment_label}"])
        ]

    def create_from_image(self, spec: ContainerSpec) -> ContainerRef:
        """Create a container, pulling its image first when it is not present locally.

        Raises:
            RuntimeRejected: If the pull or the creation fails
            RuntimeUnavailable: If the daemon cannot be reached
        """
        self._ensure_image(spec.image)
        try:
            container = self.client.containers.create(
                image=spec.image,
                name=spec.name,
                command=spec.command,
                environment=spec.env,
                labels=spec.labels,
                working_dir=spec.working_dir,
                mounts=[_to_docker_mount(m) for m in spec.mounts],
                ports={f"{port}/tcp": host for port, host in spec.port_bindings.items()},
            )
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to create container: {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to create container: {e}") from e

        logger.debug(f"Created container {container.short_id} from {spec.image}")
        return ContainerRef(
            id=container.id,
            name=container.name or "",
            service=spec.labels.get(LABEL_SERVICE, DEFAULT_SERVICE_NAME),
        )

    def build_image(self, source: BuildSource, tag: str) -> str:
        """Build an image from a Dockerfile.

        Args:
            source: Dockerfile, context, build args and target
            tag: Tag for the image

        Returns:
            The image tag

        Raises:
            RuntimeRejected: If the build fails
            RuntimeUnavailable: If the daemon cannot be reached
        """
        dockerfile = os.path.relpath(source.dockerfile, source.context)
        logger.info(f"Building image {tag} from {source.dockerfile}")
        try:
            self.client.images.build(
                path=str(source.context),
                dockerfile=dockerfile,
                tag=tag,
                rm=True,
                buildargs=source.args,
                target=source.target,
                timeout=BUILD_TIMEOUT,
            )
        except docker.errors.BuildError as e:
            raise RuntimeRejected(f"Failed to build image: {e}") from e
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to build image: {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to build image: {e}") from e
        return tag

    def compose_up(
        self,
        project_name: str,
        files: Sequence[Path],
        services: Sequence[str],
        override: Optional[Dict[str, Any]] = None,
    ) -> List[ContainerRef]:
        """Run ``compose up -d --no-deps`` for the given services only.

        The override document is written to a temporary file and passed as the
        last ``-f`` argument.
        """
        command = list(self.compose_command) + ["-p", project_name]
        for path in files:
            command += ["-f", str(path)]

        override_path = None
        if override:
            with tempfile.NamedTemporaryFile(
                "w", prefix=f"{project_name}-", suffix=".yml", delete=False
            ) as f:
                f.write(dump_compose_override(override))
                override_path = f.name
            command += ["-f", override_path]

        command += ["up", "-d", "--no-deps", *services]
        env = dict(os.environ)
        if self.base_url:
            env["DOCKER_HOST"] = self.base_url

        logger.debug(f"Running: {' '.join(command)}")
        try:
            subprocess.run(
                command,
                cwd=str(Path(files[0]).parent),
                env=env,
                check=True,
                capture_output=True,
                text=True,
                timeout=COMPOSE_TIMEOUT,
            )
        except FileNotFoundError as e:
            raise RuntimeUnavailable(f"Compose command not found: {command[0]}") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip()
            raise RuntimeRejected(f"compose up failed: {detail}") from e
        except subprocess.TimeoutExpired as e:
            raise RuntimeRejected(f"compose up timed out after {COMPOSE_TIMEOUT}s") from e
        finally:
            if override_path:
                os.unlink(override_path)

        refs = [
            self._ref(container)
            for container in self._list_containers([f"{COMPOSE_PROJECT_LABEL}={project_name}"])
        ]
        return [ref for ref in refs if ref.service in services]

    def start(self, ref: ContainerRef) -> None:
        logger.debug(f"Starting container {ref.id[:12]} ({ref.service})")
        try:
            self._get(ref).start()
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to start container: {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to start container: {e}") from e

    def stop(self, ref: ContainerRef) -> None:
        logger.debug(f"Stopping container {ref.id[:12]} ({ref.service})")
        try:
            self._get(ref).stop()
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to stop container: {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to stop container: {e}") from e

    def exec(
        self,
        ref: ContainerRef,
        argv: Sequence[str],
        workdir: Optional[str] = None,
        output: Optional[OutputCallback] = None,
        user: Optional[str] = None,
    ) -> int:
        """Execute a command in a running container, streaming its output.

        Args:
            ref: Container to run in
            argv: Command to execute
            workdir: Working directory inside the container
            output: Receives output chunks as they arrive
            user: User to run as; the container's default user when omitted

        Returns:
            Exit code of the command

        Raises:
            RuntimeRejected: If the exec cannot be created
            RuntimeUnavailable: If the daemon cannot be reached
        """
        api = self.client.api
        # frames may split a multibyte character
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            exec_id = api.exec_create(
                ref.id, cmd=list(argv), workdir=workdir, user=user or "", stdout=True, stderr=True
            )["Id"]
            for chunk in api.exec_start(exec_id, stream=True):
                text = decoder.decode(chunk)
                if output is not None and text:
                    output(text)
            tail = decoder.decode(b"", final=True)
            if output is not None and tail:
                output(tail)
            exit_code = api.exec_inspect(exec_id).get("ExitCode")
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to execute in container: {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to execute in container: {e}") from e
        return exit_code if exit_code is not None else -1

    def inspect(self, ref: ContainerRef) -> ContainerInfo:
        try:
            container = self.client.containers.get(ref.id)
        except docker.errors.NotFound:
            return ContainerInfo(ref=ref, status=ContainerStatus.MISSING)
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to inspect container: {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to inspect container: {e}") from e

        attrs = container.attrs or {}
        return ContainerInfo(
            ref=ref,
            status=ContainerStatus.from_runtime(attrs.get("State", {}).get("Status")),
            published_ports=published_ports(attrs),
            labels=(attrs.get("Config") or {}).get("Labels") or {},
        )

    def publish_port(self, ref: ContainerRef, host_port: int, container_port: int) -> None:
        """Docker cannot add port bindings to an existing container.

        Succeeds only when the binding is already in place.
        """
        info = self.inspect(ref)
        if info.published_ports.get(container_port) == host_port:
            return
        raise RuntimeRejected(
            f"Cannot publish port {container_port} on host port {host_port}: "
            f"container {ref.id[:12]} already exists"
        )

    def _ensure_image(self, image: str) -> None:
        try:
            self.client.images.get(image)
            return
        except docker.errors.ImageNotFound:
            logger.info(f"Pulling image {image}")
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to look up image: {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to look up image: {e}") from e

        try:
            self.client.images.pull(image)
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to pull image '{image}': {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to pull image '{image}': {e}") from e

    def _get(self, ref: ContainerRef) -> Container:
        try:
            return self.client.containers.get(ref.id)
        except docker.errors.NotFound as e:
            raise RuntimeRejected(f"Container '{ref.id}' not found") from e

    def _list_containers(self, label_filters: List[str]) -> List[Container]:
        try:
            return self.client.containers.list(all=True, filters={"label": label_filters})
        except docker.errors.APIError as e:
            raise RuntimeRejected(f"Failed to list containers: {e}") from e
        except OSError as e:
            raise RuntimeUnavailable(f"Failed to list containers: {e}") from e

    @staticmethod
    def _ref(container: Container) -> ContainerRef:
        labels = container.labels or {}
        service = labels.get(LABEL_SERVICE) or labels.get(COMPOSE_SERVICE_LABEL) or DEFAULT_SERVICE_NAME
        return ContainerRef(id=container.id, name=container.name or "", service=service)


def published_ports(attrs: Dict[str, Any]) -> Dict[int, Optional[int]]:
    """Container port -> host port from ``docker inspect`` output.

    Configured bindings are used for containers that are not running, live
    bindings otherwise. Exposed but unpublished ports map to ``None``.
    """
    ports: Dict[int, Optional[int]] = {}
    exposed = (attrs.get("Config") or {}).get("ExposedPorts") or {}
    configured = (attrs.get("HostConfig") or {}).get("PortBindings") or {}
    live = (attrs.get("NetworkSettings") or {}).get("Ports") or {}

    for source in (exposed, configured, live):
        for key, bindings in source.items():
            port, _, proto = key.partition("/")
            if proto and proto != "tcp":
                continue
            host_port = None
            if isinstance(bindings, list):
                host_ports = [b.get("HostPort") for b in bindings if b.get("HostPort")]
                host_port = int(host_ports[0]) if host_ports else None
            if host_port is not None or int(port) not in ports:
                ports[int(port)] = host_port
    return ports


def _to_docker_mount(mount: MountSpec) -> Mount:
    return Mount(
        target=mount.target,
        source=mount.source,
        type=mount.type,
        read_only=mount.read_only,
        consistency=mount.consistency,
    )
