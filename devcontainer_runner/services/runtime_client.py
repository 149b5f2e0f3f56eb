"""Capability interface over the container runtime."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.config import BuildSource
from ..models.plan import ContainerInfo, ContainerRef, ContainerSpec

OutputCallback = Callable[[str], None]


class RuntimeClient(ABC):
    """Operations the orchestrator needs from a container runtime.

    Every method may raise ``RuntimeUnavailable`` when the runtime cannot be
    reached, or ``RuntimeRejected`` when it refuses the operation.
    """

    @abstractmethod
    def find_by_label(self, environment_label: str) -> List[ContainerRef]:
        """Containers (in any state) tagged with the environment label."""

    @abstractmethod
    def create_from_image(self, spec: ContainerSpec) -> ContainerRef:
        """Create, without starting, a container; pulls the image if it is absent."""

    @abstractmethod
    def build_image(self, source: BuildSource, tag: str) -> str:
        """Build an image from a Dockerfile context.

        Returns:
            The tag of the built image
        """

    @abstractmethod
    def compose_up(
        self,
        project_name: str,
        files: Sequence[Path],
        services: Sequence[str],
        override: Optional[Dict[str, Any]] = None,
    ) -> List[ContainerRef]:
        """Create and start only the given services of a compose project."""

    @abstractmethod
    def start(self, ref: ContainerRef) -> None:
        pass

    @abstractmethod
    def stop(self, ref: ContainerRef) -> None:
        pass

    @abstractmethod
    def exec(
        self,
        ref: ContainerRef,
        argv: Sequence[str],
        workdir: Optional[str] = None,
        output: Optional[OutputCallback] = None,
        user: Optional[str] = None,
    ) -> int:
        """Run a command in a running container and wait for it.

        Args:
            ref: Target container
            argv: Command and arguments
            workdir: Working directory inside the container
            output: Receives decoded output chunks as they arrive
            user: User to run as instead of the container's default user

        Returns:
            The command's exit code
        """

    @abstractmethod
    def inspect(self, ref: ContainerRef) -> ContainerInfo:
        """Current status, published ports and labels; a vanished container is ``MISSING``."""

    @abstractmethod
    def publish_port(self, ref: ContainerRef, host_port: int, container_port: int) -> None:
        """Ensure ``container_port`` is reachable on ``host_port``.

        Raises:
            RuntimeRejected: If the runtime cannot publish onto the existing container
        """
