"""Lifecycle orchestration of a devcontainer environment."""

import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from ..models.config import PortConfig, ResolvedConfig
from ..models.lifecycle import (
    ATTACHABLE,
    FORWARDING_PORTS,
    PROVISIONING,
    RESOLVING,
    STOPPED,
    STOPPING,
    WAITING_READY,
    DownResult,
    LifecycleState,
    StateKind,
    UpResult,
    failed,
    running_hooks,
)
from ..models.plan import ContainerInfo, ContainerRef, ContainerSpec, ContainerStatus, ProvisionPlan
from ..services.exceptions import (
    DevcontainerError,
    HookFailed,
    InvalidTransition,
    LaunchFailed,
    ReadinessTimeout,
    RuntimeRejected,
)
from ..services.runtime_client import OutputCallback, RuntimeClient
from ..utils.ports import request_open_port
from .compose import build_compose_override
from .constants import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_READY_TIMEOUT,
    ENV_APPLICATION_PORT,
    HOOK_PHASES,
    KEEP_ALIVE_COMMAND,
    LABEL_APPLICATION_PORT,
    MARKER_DIR,
    MARKER_USER,
    POST_ATTACH,
    POST_CREATE,
    POST_START,
    SHUTDOWN_STOP_COMPOSE,
    SHUTDOWN_STOP_CONTAINER,
    WAIT_APPLICATION,
    WAIT_CONTAINER,
)
from .launcher import ApplicationLauncher, LaunchContext
from .port_forwarder import PortForwarder

logger = logging.getLogger(__name__)

TRANSITIONS = {
    StateKind.RESOLVING: {StateKind.PROVISIONING, StateKind.STOPPING},
    StateKind.PROVISIONING: {StateKind.WAITING_READY},
    StateKind.WAITING_READY: {StateKind.RUNNING_HOOKS},
    StateKind.RUNNING_HOOKS: {StateKind.RUNNING_HOOKS, StateKind.FORWARDING_PORTS},
    StateKind.FORWARDING_PORTS: {StateKind.ATTACHABLE},
    StateKind.ATTACHABLE: {StateKind.STOPPING},
    StateKind.STOPPING: {StateKind.STOPPED},
    StateKind.STOPPED: set(),
    StateKind.FAILED: set(),
}


def _write_stdout(chunk: str) -> None:
    sys.stdout.write(chunk)
    sys.stdout.flush()


def marker_path(environment_label: str) -> str:
    """In-container file recording that postCreate completed."""
    return f"{MARKER_DIR}/{environment_label}.postcreate"


class LifecycleOrchestrator:
    """Drives one environment through the lifecycle state machine.

    One instance serves one invocation. Whether containers already exist is
    decided only from what the runtime reports for the environment label.
    """

    def __init__(
        self,
        runtime: RuntimeClient,
        config: ResolvedConfig,
        plan: ProvisionPlan,
        forwarder: Optional[PortForwarder] = None,
        launcher: Optional[ApplicationLauncher] = None,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        output: OutputCallback = _write_stdout,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        allocate_port: Callable[[], int] = request_open_port,
    ):
        self.runtime = runtime
        self.config = config
        self.plan = plan
        self.forwarder = forwarder or PortForwarder(runtime)
        self.launcher = launcher or ApplicationLauncher()
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval
        self._output = output
        self._sleep = sleep
        self._clock = clock
        self._allocate_port = allocate_port
        self.application_port: Optional[int] = None
        self.state: LifecycleState = RESOLVING
        self.history: List[LifecycleState] = [RESOLVING]

    @property
    def label(self) -> str:
        return self.plan.environment_label

    def up(self, launch: bool = True) -> UpResult:
        """Provision, initialize and attach to the environment.

        Args:
            launch: Start the configured application once attachable

        Returns:
            The outcome, with non-fatal problems collected in ``warnings``

        Raises:
            DevcontainerError: On any fatal error; existing containers are left in place
        """
        try:
            return self._up(launch)
        except DevcontainerError as e:
            self._fail(e)
            raise
        except KeyboardInterrupt as e:
            logger.warning(f"Interrupted while {self.state}; containers are left as they are")
            self._fail(e)
            raise

    def down(self) -> DownResult:
        """Stop every container of the environment."""
        try:
            self._transition(STOPPING)
            result = DownResult(environment_label=self.label)
            # auxiliary services first so the primary outlives its dependencies
            refs = sorted(
                self.runtime.find_by_label(self.label),
                key=lambda ref: ref.service == self.plan.primary_service,
            )
            for ref in refs:
                if self.runtime.inspect(ref).is_running:
                    self.runtime.stop(ref)
                    result.stopped.append(ref.service)
            self.forwarder.release()
            self._transition(STOPPED)
            return result
        except DevcontainerError as e:
            self._fail(e)
            raise

    def wait(self, result: UpResult) -> str:
        """Block while the attached session lasts.

        The session ends when the launched application exits or the primary
        container stops. ``KeyboardInterrupt`` reaches the caller.

        Returns:
            ``WAIT_APPLICATION`` or ``WAIT_CONTAINER``, whichever ended it
        """
        if self.state.kind is not StateKind.ATTACHABLE:
            raise InvalidTransition(f"Cannot wait on an environment that is {self.state}")

        while True:
            if result.application is not None and result.application.poll() is not None:
                logger.info(f"Application exited with {result.application.returncode}")
                return WAIT_APPLICATION
            if not self.runtime.inspect(result.primary.ref).is_running:
                logger.warning(f"Container {result.primary.ref.id[:12]} has stopped")
                return WAIT_CONTAINER
            self._sleep(self.poll_interval)

    def shutdown_requested(self) -> bool:
        """Whether ``shutdownAction`` asks for ``down`` when an attached session ends."""
        expected = SHUTDOWN_STOP_COMPOSE if self.plan.is_compose else SHUTDOWN_STOP_CONTAINER
        return self.config.shutdown_action == expected

    def _up(self, launch: bool) -> UpResult:
        self._transition(PROVISIONING)
        existing = self._observe_existing()
        primary_service = self.plan.primary_service
        previous = existing.get(primary_service)
        created = previous is None
        was_running = previous is not None and previous.is_running
        self.application_port = self._application_port(previous)
        refs = self._provision(existing)

        self._transition(WAITING_READY)
        infos = self._wait_ready(refs)
        primary = infos[primary_service]

        result = UpResult(
            environment_label=self.label,
            primary=primary,
            created=created,
            application_port=self.application_port,
        )
        self._run_hooks(primary.ref, created=created, was_running=was_running, result=result)

        self._transition(FORWARDING_PORTS)
        environment = [primary] + [infos[s] for s in self.plan.aux_services]
        result.port_mappings = self.forwarder.forward(self.plan, self._requested_ports(), environment)
        for problem in self.forwarder.failures:
            logger.warning(str(problem))
            result.warnings.append(problem)

        self._transition(ATTACHABLE)
        if launch:
            self._launch(result)
        return result

    def _observe_existing(self) -> Dict[str, ContainerInfo]:
        """Planned services that already have a container, keyed by service."""
        existing: Dict[str, ContainerInfo] = {}
        for ref in self.runtime.find_by_label(self.label):
            if ref.service not in self.plan.services:
                continue
            if ref.service in existing:
                logger.debug(f"Ignoring extra container {ref.id[:12]} for {ref.service}")
                continue
            info = self.runtime.inspect(ref)
            if info.status is not ContainerStatus.MISSING:
                existing[ref.service] = info
        if existing:
            logger.info(f"Reusing containers for {sorted(existing)}")
        return existing

    def _application_port(self, previous: Optional[ContainerInfo]) -> Optional[int]:
        """Host port reserved for the application.

        A reused primary container keeps the port recorded in its label; a
        new one gets a free host port.
        """
        if self.config.application is None:
            return None

        if previous is not None:
            value = previous.labels.get(LABEL_APPLICATION_PORT)
            if value is None:
                logger.warning(
                    f"Container {previous.ref.id[:12]} has no application port; "
                    f"{ENV_APPLICATION_PORT} will not be set"
                )
                return None
            try:
                return int(value)
            except ValueError:
                logger.warning(f"Ignoring invalid application port label {value!r}")
                return None

        try:
            port = self._allocate_port()
        except OSError as e:
            logger.warning(f"Could not allocate an application port: {e}")
            return None
        logger.info(f"Application port: {port}")
        return port

    def _requested_ports(self) -> PortConfig:
        """Configured ports plus the application port, published identically."""
        ports = self.config.ports
        port = self.application_port
        if port is None or port in ports.forward_ports:
            return ports
        return ports.model_copy(update={"forward_ports": (*ports.forward_ports, port)})

    def _provision(self, existing: Dict[str, ContainerInfo]) -> Dict[str, ContainerRef]:
        refs = {service: info.ref for service, info in existing.items()}
        to_start = [info.ref for info in existing.values() if not info.is_running]
        missing = [s for s in self.plan.services if s not in existing]

        if missing and self.plan.is_compose:
            source = self.plan.source
            created = self.runtime.compose_up(
                self.plan.project_name,
                source.files,
                self.plan.services,
                override=build_compose_override(self.plan, self.config, self.application_port),
            )
            refs.update({ref.service: ref for ref in created})
            # compose up starts every service it is given
            to_start = []
            absent = [s for s in self.plan.services if s not in refs]
            if absent:
                raise RuntimeRejected(f"compose did not create services: {', '.join(absent)}")
        elif missing:
            ref = self._create_primary()
            refs[ref.service] = ref
            to_start.append(ref)

        self._start_all(to_start)
        return refs

    def _create_primary(self) -> ContainerRef:
        if self.plan.source.kind == "build":
            self.runtime.build_image(self.plan.source, self.plan.image)

        labels = self.plan.labels_for(self.plan.primary_service)
        env = dict(self.config.env)
        if self.application_port is not None:
            labels[LABEL_APPLICATION_PORT] = str(self.application_port)
            env[ENV_APPLICATION_PORT] = str(self.application_port)

        spec = ContainerSpec(
            image=self.plan.image,
            name=self.plan.container_name,
            labels=labels,
            env=env,
            mounts=(self.config.workspace_mount, *self.config.mounts),
            port_bindings=self.forwarder.requested_bindings(self._requested_ports()),
            command=list(KEEP_ALIVE_COMMAND) if self.config.override_command else None,
            working_dir=self.config.workspace_folder,
        )
        logger.info(f"Creating container {spec.name} from {spec.image}")
        return self.runtime.create_from_image(spec)

    def _start_all(self, refs: List[ContainerRef]) -> None:
        """Start containers concurrently and wait for all of them."""
        if not refs:
            return
        logger.info(f"Starting {', '.join(ref.service for ref in refs)}")
        with ThreadPoolExecutor(max_workers=len(refs)) as pool:
            futures = [pool.submit(self.runtime.start, ref) for ref in refs]
            for future in futures:
                future.result()

    def _wait_ready(self, refs: Dict[str, ContainerRef]) -> Dict[str, ContainerInfo]:
        """Poll until every planned container is running or the deadline passes."""
        deadline = self._clock() + self.ready_timeout
        attempt = 0
        while True:
            attempt += 1
            infos = {service: self.runtime.inspect(ref) for service, ref in refs.items()}
            pending = [service for service, info in infos.items() if not info.is_running]
            if not pending:
                return infos

            logger.debug(f"Readiness check {attempt}: waiting for {pending}")
            if self._clock() >= deadline:
                raise ReadinessTimeout(self.ready_timeout, pending)
            self._sleep(self.poll_interval)

    def _run_hooks(
        self, primary: ContainerRef, created: bool, was_running: bool, result: UpResult
    ) -> None:
        due = []
        if self._post_create_due(primary, created):
            due.append(POST_CREATE)
        if not was_running:
            due.append(POST_START)
        due.append(POST_ATTACH)

        for phase in due:
            self._transition(running_hooks(phase))
            command = self.config.hooks.get(phase)
            if command is None:
                continue

            logger.info(f"Running {phase}: {command.display()}")
            try:
                exit_code = self.runtime.exec(
                    primary,
                    command.exec_argv(),
                    workdir=self.config.workspace_folder,
                    output=self._output,
                )
            except RuntimeRejected as e:
                problem = HookFailed(phase, None, e.detail)
            else:
                if exit_code == 0:
                    result.hooks_run.append(phase)
                    if phase == POST_CREATE:
                        self._write_marker(primary)
                    continue
                problem = HookFailed(phase, exit_code)

            logger.warning(str(problem))
            result.warnings.append(problem)

    def _post_create_due(self, primary: ContainerRef, created: bool) -> bool:
        if created:
            return True
        if self.config.hooks.post_create is None:
            return False
        try:
            present = self.runtime.exec(
                primary, ["test", "-f", marker_path(self.label)], user=MARKER_USER
            ) == 0
        except RuntimeRejected as e:
            logger.warning(f"Could not check postCreate marker: {e}")
            return False
        if not present:
            logger.info("postCreate has not completed in this container yet")
        return not present

    def _write_marker(self, primary: ContainerRef) -> None:
        marker = marker_path(self.label)
        try:
            exit_code = self.runtime.exec(
                primary,
                ["/bin/sh", "-c", f"mkdir -p {MARKER_DIR} && touch {marker}"],
                user=MARKER_USER,
            )
        except RuntimeRejected as e:
            exit_code = None
            logger.debug(f"Marker exec rejected: {e}")
        if exit_code != 0:
            logger.warning(f"Could not record postCreate completion at {marker}; it will run again")

    def _launch(self, result: UpResult) -> None:
        if self.config.application is None:
            return
        context = LaunchContext(
            config=self.config,
            environment_label=self.label,
            container_id=result.primary.ref.id,
            port_mappings=set(result.port_mappings),
            application_port=result.application_port,
        )
        try:
            result.application = self.launcher.launch(self.config.application, context)
        except LaunchFailed as e:
            logger.warning(str(e))
            result.warnings.append(e)

    def _transition(self, new_state: LifecycleState) -> None:
        allowed = TRANSITIONS[self.state.kind]
        valid = new_state.kind in allowed
        if valid and new_state.kind is StateKind.RUNNING_HOOKS and self.state.kind is StateKind.RUNNING_HOOKS:
            valid = HOOK_PHASES.index(new_state.phase) > HOOK_PHASES.index(self.state.phase)
        if not valid:
            raise InvalidTransition(f"Cannot move from {self.state} to {new_state}")

        logger.info(f"{self.label}: {self.state} -> {new_state}")
        self.state = new_state
        self.history.append(new_state)

    def _fail(self, cause: BaseException) -> None:
        if self.state.kind is StateKind.FAILED:
            return
        logger.info(f"{self.label}: {self.state} -> Failed ({cause})")
        self.state = failed(cause)
        self.history.append(self.state)
