import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import yaml
from click.testing import CliRunner

from devcontainer_runner.core.config_resolver import resolve
from devcontainer_runner.core.constants import LABEL_ENVIRONMENT, LABEL_SERVICE
from devcontainer_runner.models.plan import ContainerInfo, ContainerRef, ContainerStatus
from devcontainer_runner.services.exceptions import RuntimeRejected
from devcontainer_runner.services.runtime_client import RuntimeClient


class FakeRuntime(RuntimeClient):
    """In-memory runtime that behaves like a docker daemon for the orchestrator."""

    def __init__(self):
        self.containers: Dict[str, dict] = {}
        self.calls: List[tuple] = []
        self.execs: List[tuple] = []
        # argv tuple -> exit code for hook commands
        self.exit_codes: Dict[tuple, int] = {}
        # argv tuple -> exception raised instead of running
        self.exec_errors: Dict[tuple, Exception] = {}
        # service -> {container port: host port} published by compose
        self.compose_ports: Dict[str, Dict[int, int]] = {}
        self.compose_overrides: List[dict] = []
        # inspections a started container stays in Created before it runs
        self.start_delay = 0
        # False simulates an image whose default user cannot write the marker directory
        self.default_user_is_root = True
        self._counter = 0

    def _add(self, service: str, labels: dict, ports: dict, status: ContainerStatus) -> ContainerRef:
        self._counter += 1
        container_id = f"{self._counter:012d}" + "f" * 52
        self.containers[container_id] = {
            "service": service,
            "labels": dict(labels),
            "ports": dict(ports),
            "status": status,
            "pending": None,
            "files": set(),
        }
        return ContainerRef(id=container_id, name=f"c{self._counter}", service=service)

    def _ref(self, container_id: str) -> ContainerRef:
        return ContainerRef(
            id=container_id,
            name="",
            service=self.containers[container_id]["service"],
        )

    def find_by_label(self, environment_label):
        self.calls.append(("find_by_label", environment_label))
        return [
            self._ref(cid)
            for cid, c in self.containers.items()
            if c["labels"].get(LABEL_ENVIRONMENT) == environment_label
        ]

    def create_from_image(self, spec):
        self.calls.append(("create_from_image", spec))
        return self._add(
            spec.labels[LABEL_SERVICE], spec.labels, spec.port_bindings, ContainerStatus.CREATED
        )

    def build_image(self, source, tag):
        self.calls.append(("build_image", tag))
        return tag

    def compose_up(self, project_name, files, services, override=None):
        self.calls.append(("compose_up", tuple(services)))
        self.compose_overrides.append(override)
        refs = []
        for service in services:
            existing = [
                cid for cid, c in self.containers.items()
                if c["service"] == service and c["labels"].get(LABEL_ENVIRONMENT) == project_name
            ]
            if existing:
                self.containers[existing[0]]["status"] = ContainerStatus.RUNNING
                refs.append(self._ref(existing[0]))
            else:
                declared = override["services"][service]
                ports = dict(self.compose_ports.get(service, {}))
                for entry in declared.get("ports", []):
                    host, container = entry.split(":")
                    ports[int(container)] = int(host)
                refs.append(self._add(service, declared["labels"], ports, ContainerStatus.RUNNING))
        return refs

    def start(self, ref):
        self.calls.append(("start", ref.service))
        container = self.containers[ref.id]
        if self.start_delay:
            container["pending"] = self.start_delay
        else:
            container["status"] = ContainerStatus.RUNNING

    def stop(self, ref):
        self.calls.append(("stop", ref.service))
        self.containers[ref.id]["status"] = ContainerStatus.STOPPED

    def exec(self, ref, argv, workdir=None, output=None, user=None):
        argv = list(argv)
        container = self.containers[ref.id]
        if argv[:2] == ["test", "-f"]:
            return 0 if argv[2] in container["files"] else 1
        if argv[:2] == ["/bin/sh", "-c"] and "touch " in argv[2]:
            if user != "root" and not self.default_user_is_root:
                return 1
            container["files"].add(argv[2].split("touch ", 1)[1])
            return 0

        self.execs.append((ref.service, tuple(argv), workdir))
        if tuple(argv) in self.exec_errors:
            raise self.exec_errors[tuple(argv)]
        if output is not None:
            output(f"ran {' '.join(argv)}\n")
        return self.exit_codes.get(tuple(argv), 0)

    def inspect(self, ref):
        container = self.containers.get(ref.id)
        if container is None:
            return ContainerInfo(ref=ref, status=ContainerStatus.MISSING)
        if container["pending"] is not None:
            container["pending"] -= 1
            if container["pending"] <= 0:
                container["pending"] = None
                container["status"] = ContainerStatus.RUNNING
        return ContainerInfo(
            ref=ref,
            status=container["status"],
            published_ports=container["ports"],
            labels=container["labels"],
        )

    def publish_port(self, ref, host_port, container_port):
        if self.containers[ref.id]["ports"].get(container_port) == host_port:
            return
        raise RuntimeRejected("cannot publish onto an existing container")

    # test helpers

    def hook_runs(self) -> List[tuple]:
        return [argv for _, argv, _ in self.execs]

    def created_count(self) -> int:
        return sum(1 for call in self.calls if call[0] == "create_from_image")

    def remove_all(self) -> None:
        self.containers.clear()


@pytest.fixture
def cli_runner():
    """Provides a Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def fake_runtime():
    """Provides an in-memory runtime client."""
    return FakeRuntime()


@pytest.fixture
def make_project(tmp_path):
    """Factory creating a project directory with a .devcontainer config.

    Returns the project path; extra files are written relative to .devcontainer.
    """
    def _make(document: dict, files: Optional[Dict[str, object]] = None, name: str = "my-app") -> Path:
        project = tmp_path / name
        config_dir = project / ".devcontainer"
        config_dir.mkdir(parents=True)
        (config_dir / "devcontainer.json").write_text(json.dumps(document))
        for relative, content in (files or {}).items():
            path = config_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, dict):
                content = yaml.safe_dump(content)
            path.write_text(content)
        return project

    return _make


@pytest.fixture
def resolved_config(make_project):
    """Factory resolving a project document (and optional user document)."""
    def _resolve(document: dict, user: Optional[dict] = None, files=None):
        project = make_project(document, files=files)
        user_path = None
        if user is not None:
            user_path = project.parent / "user-devcontainer.json"
            user_path.write_text(json.dumps(user))
        return resolve(project / ".devcontainer" / "devcontainer.json", user_path)

    return _resolve


@pytest.fixture(autouse=True)
def isolated_user_settings(tmp_path, monkeypatch):
    """Keep tests away from the real user settings file."""
    monkeypatch.setenv("DEVCONTAINER_USER_SETTINGS", str(tmp_path / "no-user-settings.json"))
    monkeypatch.delenv("DEVCONTAINER_COMPOSE_COMMAND", raising=False)
