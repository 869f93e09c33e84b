"""Docker container runtime adapter.

Wraps the ``docker`` SDK (docker-py) to implement
:class:`IContainerRuntime`.  Every container is tagged with
``ai-testbed.label=<label>`` so a later process can find and adopt it
instead of starting a duplicate.

The daemon is contacted eagerly in ``__init__`` (a ``ping``); when it is not
reachable :class:`RuntimeUnavailableError` is raised and the test harness
turns that into a skip.
"""

from __future__ import annotations

from urllib.parse import urlparse

import docker
import docker.errors
import structlog

from ai_testbed.config.settings import Settings
from ai_testbed.interfaces.container_runtime import LABEL_KEY, ExecResult, IContainerRuntime
from ai_testbed.models.service import RunningInstance, ServiceDescriptor, ServiceLabel
from ai_testbed.services.port_binder import PortBinder
from ai_testbed.utils.errors import PortConflict, RuntimeUnavailableError, TestbedError

logger = structlog.get_logger(logger_name=__name__)

_PORT_CONFLICT_MARKERS = ("port is already allocated", "address already in use")


class DockerContainerRuntime(IContainerRuntime):
    """Container runtime backed by the local (or ``DOCKER_HOST``) docker daemon."""

    def __init__(self, settings: Settings, client: docker.DockerClient | None = None) -> None:
        self._settings = settings
        try:
            if client is None:
                if settings.docker_host:
                    client = docker.DockerClient(base_url=settings.docker_host)
                else:
                    client = docker.from_env()
            client.ping()
        except docker.errors.DockerException as exc:
            raise RuntimeUnavailableError(
                message=f"Docker is not running or not installed: {exc}",
                provider_name=self.get_runtime_name(),
            ) from exc
        self._client = client
        self._binder = PortBinder(settings)
        self._host = self._resolve_host()

    # ------------------------------------------------------------------
    # IContainerRuntime implementation
    # ------------------------------------------------------------------

    def find_running(self, label: ServiceLabel) -> RunningInstance | None:
        try:
            containers = self._client.containers.list(
                filters={"label": f"{LABEL_KEY}={label}", "status": "running"}
            )
        except docker.errors.DockerException as exc:
            raise TestbedError(
                message=f"Listing containers for {label!r} failed: {exc}",
                provider_name=self.get_runtime_name(),
            ) from exc
        if not containers:
            return None
        container = containers[0]
        if len(containers) > 1:
            logger.warning("multiple_containers_for_label", label=label, count=len(containers))
        return self._to_instance(label, container, adopted=True)

    def start(self, descriptor: ServiceDescriptor) -> RunningInstance:
        for mount in descriptor.mounts:
            mount.host_path.mkdir(parents=True, exist_ok=True)

        try:
            container = self._client.containers.run(
                descriptor.image,
                command=list(descriptor.command) if descriptor.command else None,
                detach=True,
                ports=self._binder.port_map(descriptor),
                environment=dict(descriptor.environment),
                volumes={
                    str(mount.host_path.resolve()): {
                        "bind": mount.container_path,
                        "mode": "ro" if mount.read_only else "rw",
                    }
                    for mount in descriptor.mounts
                },
                labels={LABEL_KEY: descriptor.label},
            )
        except docker.errors.APIError as exc:
            explanation = str(getattr(exc, "explanation", "") or exc)
            if any(marker in explanation.lower() for marker in _PORT_CONFLICT_MARKERS):
                raise PortConflict(
                    message=f"Host port for {descriptor.label!r} is already in use: {explanation}",
                    provider_name=descriptor.label,
                ) from exc
            raise TestbedError(
                message=f"Starting {descriptor.image} failed: {explanation}",
                provider_name=descriptor.label,
            ) from exc
        except docker.errors.DockerException as exc:
            raise TestbedError(
                message=f"Starting {descriptor.image} failed: {exc}",
                provider_name=descriptor.label,
            ) from exc

        logger.info(
            "container_started",
            label=descriptor.label,
            image=descriptor.image,
            container_id=container.short_id,
        )
        return RunningInstance(
            label=descriptor.label,
            container_id=container.id,
            host=self._host,
            ports={b.container_port: b.host_port for b in descriptor.ports},
        )

    def exec(self, instance: RunningInstance, command: list[str]) -> ExecResult:
        try:
            container = self._client.containers.get(instance.container_id)
            result = container.exec_run(command, demux=True)
        except docker.errors.DockerException as exc:
            raise TestbedError(
                message=f"exec {command[0]!r} failed: {exc}",
                provider_name=instance.label,
            ) from exc
        stdout, stderr = result.output if result.output else (None, None)
        return ExecResult(
            exit_code=result.exit_code if result.exit_code is not None else -1,
            stdout=(stdout or b"").decode("utf-8", errors="replace"),
            stderr=(stderr or b"").decode("utf-8", errors="replace"),
        )

    def stop(self, instance: RunningInstance) -> None:
        try:
            container = self._client.containers.get(instance.container_id)
            container.remove(force=True)
            logger.info("container_removed", label=instance.label, container_id=instance.container_id[:12])
        except docker.errors.NotFound:
            logger.debug("container_already_gone", label=instance.label)
        except docker.errors.DockerException as exc:
            raise TestbedError(
                message=f"Removing container failed: {exc}",
                provider_name=instance.label,
            ) from exc

    def get_runtime_name(self) -> str:
        return "docker"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_host(self) -> str:
        """Host name clients should use to reach published ports."""
        if self._settings.docker_host.startswith(("tcp://", "ssh://", "http://", "https://")):
            hostname = urlparse(self._settings.docker_host).hostname
            if hostname:
                return hostname
        if self._settings.bind_host in ("", "0.0.0.0"):
            return "127.0.0.1"
        return self._settings.bind_host

    def _to_instance(self, label: str, container, adopted: bool) -> RunningInstance:
        container.reload()
        published = container.attrs.get("NetworkSettings", {}).get("Ports") or {}
        ports: dict[int, int] = {}
        for key, bindings in published.items():
            if not bindings:
                continue
            container_port = int(key.split("/", 1)[0])
            ports[container_port] = int(bindings[0]["HostPort"])
        return RunningInstance(
            label=label,
            container_id=container.id,
            host=self._host,
            ports=dict(sorted(ports.items())),
            adopted=adopted,
        )


def docker_available(settings: Settings | None = None) -> bool:
    """Return True if a docker daemon answers a ping.

    Used by test harnesses to skip docker-backed tests.
    """
    try:
        DockerContainerRuntime(settings or Settings())
    except RuntimeUnavailableError:
        return False
    return True
