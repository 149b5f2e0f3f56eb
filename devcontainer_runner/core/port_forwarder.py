"""Host to container port forwarding."""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..models.config import PortConfig, PortMapping
from ..models.plan import ActivePortMapping, ContainerInfo, ProvisionPlan
from ..services.exceptions import (
    PortForwardingError,
    PortMappingConflict,
    PortNotExposed,
    RuntimeRejected,
)
from ..services.runtime_client import RuntimeClient

logger = logging.getLogger(__name__)


class PortForwarder:
    """Establishes the port mappings of ``appPort`` and ``forwardPorts``.

    Image and build containers get their bindings at creation time (see
    ``requested_bindings``); ``forward`` then checks that a reused container
    publishes what is requested. Compose services publish whatever their
    compose file declares, so only presence is verified.

    Problems found by the last ``forward`` call are kept in ``failures``.
    """

    def __init__(self, runtime: RuntimeClient):
        self.runtime = runtime
        self.active: Set[ActivePortMapping] = set()
        self.failures: List[PortForwardingError] = []

    @staticmethod
    def requested_bindings(ports: PortConfig) -> Dict[int, int]:
        """Container port -> host port to request when creating a container."""
        return {mapping.container: mapping.host for mapping in ports.requested()}

    def forward(
        self,
        plan: ProvisionPlan,
        ports: PortConfig,
        environment: Iterable[ContainerInfo],
    ) -> Set[ActivePortMapping]:
        """Establish or verify every requested mapping.

        Args:
            plan: The provisioning plan being executed
            ports: Requested ports
            environment: Inspected containers, primary first

        Returns:
            The mappings that are in place
        """
        environment = list(environment)
        self.failures = []
        if plan.is_compose:
            mappings = self._verify_compose(ports.requested(), environment)
        else:
            mappings = self._ensure_published(ports.requested(), environment[0])

        self.active = mappings
        for mapping in sorted(mappings, key=lambda m: m.container_port):
            logger.info(
                f"Port {mapping.container_port} ({mapping.service}) available at {mapping.address}"
            )
        return mappings

    def release(self) -> None:
        """Forget the active mappings; the runtime unpublishes them with the container."""
        for mapping in self.active:
            logger.debug(f"Releasing {mapping.address} -> {mapping.container_port}")
        self.active = set()

    def _ensure_published(
        self, requested: List[PortMapping], primary: ContainerInfo
    ) -> Set[ActivePortMapping]:
        mappings = set()
        for mapping in requested:
            actual = primary.published_ports.get(mapping.container)
            if actual != mapping.host:
                try:
                    self.runtime.publish_port(primary.ref, mapping.host, mapping.container)
                except RuntimeRejected as e:
                    logger.warning(f"Port {mapping.container} not forwarded: {e}")
                    self.failures.append(
                        PortMappingConflict(mapping.container, mapping.host, actual)
                    )
                    continue

            mappings.add(
                ActivePortMapping(
                    container_port=mapping.container,
                    host_port=mapping.host,
                    service=primary.ref.service,
                )
            )
        return mappings

    def _verify_compose(
        self, requested: List[PortMapping], environment: List[ContainerInfo]
    ) -> Set[ActivePortMapping]:
        # container port -> (host port, service), first container wins
        published: Dict[int, Tuple[int, str]] = {}
        for info in environment:
            for container_port, host_port in info.published_ports.items():
                if host_port is not None:
                    published.setdefault(container_port, (host_port, info.ref.service))

        mappings = set()
        for mapping in requested:
            found = self._lookup(published, mapping)
            if found is None:
                self.failures.append(PortNotExposed(mapping.container))
                continue

            container_port, host_port, service = found
            if host_port != mapping.host:
                logger.debug(
                    f"Port {container_port} is published on {host_port} by the compose file, "
                    f"not {mapping.host}"
                )
            mappings.add(
                ActivePortMapping(container_port=container_port, host_port=host_port, service=service)
            )
        return mappings

    @staticmethod
    def _lookup(
        published: Dict[int, Tuple[int, str]], mapping: PortMapping
    ) -> Optional[Tuple[int, int, str]]:
        if mapping.container in published:
            host_port, service = published[mapping.container]
            return mapping.container, host_port, service
        for container_port, (host_port, service) in published.items():
            if host_port == mapping.host:
                return container_port, host_port, service
        return None
