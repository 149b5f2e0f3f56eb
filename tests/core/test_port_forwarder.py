"""Tests for the port forwarder."""

from unittest.mock import MagicMock

import pytest

from devcontainer_runner.core.port_forwarder import PortForwarder
from devcontainer_runner.core.topology import plan
from devcontainer_runner.models.config import PortConfig, PortMapping
from devcontainer_runner.models.plan import ActivePortMapping, ContainerInfo, ContainerRef, ContainerStatus
from devcontainer_runner.services.exceptions import PortMappingConflict, PortNotExposed, RuntimeRejected


def _info(service, ports, container_id="abc"):
    return ContainerInfo(
        ref=ContainerRef(id=container_id, service=service),
        status=ContainerStatus.RUNNING,
        published_ports=ports,
    )


@pytest.fixture
def image_plan(resolved_config):
    return plan(resolved_config({"image": "alpine"}))


@pytest.fixture
def compose_plan(resolved_config):
    config = resolved_config(
        {"dockerComposeFile": "docker-compose.yml", "service": "app", "runServices": ["db"]},
        files={"docker-compose.yml": {"services": {"app": {}, "db": {}}}},
    )
    return plan(config)


class TestRequestedBindings:
    def test_app_port_mapping_honoured(self):
        ports = PortConfig(app_port=PortMapping(host=8080, container=80))

        assert PortForwarder.requested_bindings(ports) == {80: 8080}

    def test_forward_ports_identity(self):
        ports = PortConfig(app_port=PortMapping(host=8080, container=8080), forward_ports=(5432, 6379))

        assert PortForwarder.requested_bindings(ports) == {8080: 8080, 5432: 5432, 6379: 6379}


class TestImageForwarding:
    def test_matching_ports_become_active(self, image_plan):
        runtime = MagicMock()
        forwarder = PortForwarder(runtime)
        ports = PortConfig(app_port=PortMapping(host=8080, container=80), forward_ports=(3000,))

        mappings = forwarder.forward(image_plan, ports, [_info("default", {80: 8080, 3000: 3000})])

        assert mappings == {
            ActivePortMapping(container_port=80, host_port=8080, service="default"),
            ActivePortMapping(container_port=3000, host_port=3000, service="default"),
        }
        assert forwarder.failures == []
        runtime.publish_port.assert_not_called()

    def test_mismatch_asks_runtime_to_publish(self, image_plan):
        runtime = MagicMock()
        forwarder = PortForwarder(runtime)
        ports = PortConfig(forward_ports=(3000,))
        primary = _info("default", {})

        mappings = forwarder.forward(image_plan, ports, [primary])

        runtime.publish_port.assert_called_once_with(primary.ref, 3000, 3000)
        assert len(mappings) == 1

    def test_conflict_when_runtime_refuses(self, image_plan):
        runtime = MagicMock()
        runtime.publish_port.side_effect = RuntimeRejected("already exists")
        forwarder = PortForwarder(runtime)
        ports = PortConfig(app_port=PortMapping(host=8080, container=80), forward_ports=(3000,))

        mappings = forwarder.forward(image_plan, ports, [_info("default", {80: 9090, 3000: 3000})])

        assert {m.container_port for m in mappings} == {3000}
        assert len(forwarder.failures) == 1
        conflict = forwarder.failures[0]
        assert isinstance(conflict, PortMappingConflict)
        assert (conflict.container_port, conflict.requested, conflict.actual) == (80, 8080, 9090)


class TestComposeForwarding:
    def test_verifies_across_services(self, compose_plan):
        runtime = MagicMock()
        forwarder = PortForwarder(runtime)
        ports = PortConfig(forward_ports=(8000, 5432))
        environment = [
            _info("app", {8000: 8000}, "a"),
            _info("db", {5432: 15432}, "b"),
        ]

        mappings = forwarder.forward(compose_plan, ports, environment)

        assert mappings == {
            ActivePortMapping(container_port=8000, host_port=8000, service="app"),
            ActivePortMapping(container_port=5432, host_port=15432, service="db"),
        }
        runtime.publish_port.assert_not_called()

    def test_matches_host_port(self, compose_plan):
        forwarder = PortForwarder(MagicMock())

        mappings = forwarder.forward(
            compose_plan, PortConfig(forward_ports=(8080,)), [_info("app", {80: 8080})]
        )

        assert mappings == {ActivePortMapping(container_port=80, host_port=8080, service="app")}

    def test_missing_port_reported(self, compose_plan):
        forwarder = PortForwarder(MagicMock())

        mappings = forwarder.forward(
            compose_plan, PortConfig(forward_ports=(9000,)), [_info("app", {8000: None})]
        )

        assert mappings == set()
        assert [f.port for f in forwarder.failures if isinstance(f, PortNotExposed)] == [9000]


def test_release_clears_active(image_plan):
    forwarder = PortForwarder(MagicMock())
    forwarder.forward(image_plan, PortConfig(forward_ports=(3000,)), [_info("default", {3000: 3000})])

    forwarder.release()

    assert forwarder.active == set()
