"""Shared pytest fixtures for the ai-testbed test suite."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from ai_testbed.config.settings import Settings
from ai_testbed.interfaces.asset_backend import IAssetBackend
from ai_testbed.interfaces.container_runtime import ExecResult, IContainerRuntime
from ai_testbed.interfaces.readiness_probe import IReadinessProbe
from ai_testbed.models.service import (
    PortBinding,
    ReadinessCheck,
    RunningInstance,
    ServiceDescriptor,
)
from ai_testbed.utils.errors import StartupTimeout

# ---------------------------------------------------------------------------
# Docker gate
# ---------------------------------------------------------------------------

_docker_state: dict[str, bool] = {}


def _docker_is_available() -> bool:
    if "available" not in _docker_state:
        from ai_testbed.providers.runtime.docker_runtime import docker_available

        _docker_state["available"] = docker_available()
    return _docker_state["available"]


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip tests marked ``docker`` when no daemon answers."""
    docker_items = [item for item in items if item.get_closest_marker("docker")]
    if not docker_items or _docker_is_available():
        return
    skip = pytest.mark.skip(reason="docker daemon is not available")
    for item in docker_items:
        item.add_marker(skip)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeRuntime(IContainerRuntime):
    """In-memory container runtime that records every call."""

    def __init__(self, start_delay: float = 0.0) -> None:
        self.start_delay = start_delay
        self.started: list[ServiceDescriptor] = []
        self.stopped: list[RunningInstance] = []
        self.exec_calls: list[list[str]] = []
        # Containers "already running" from an earlier process, by label.
        self.preexisting: dict[str, RunningInstance] = {}
        self.exec_handler: Callable[[RunningInstance, list[str]], ExecResult] = (
            lambda instance, command: ExecResult(exit_code=0)
        )
        self._lock = threading.Lock()

    def find_running(self, label: str) -> RunningInstance | None:
        return self.preexisting.get(label)

    def start(self, descriptor: ServiceDescriptor) -> RunningInstance:
        time.sleep(self.start_delay)
        with self._lock:
            self.started.append(descriptor)
            container_id = f"fake-{len(self.started):04d}"
        return RunningInstance(
            label=descriptor.label,
            container_id=container_id,
            host="127.0.0.1",
            ports={b.container_port: b.host_port for b in descriptor.ports},
        )

    def exec(self, instance: RunningInstance, command: list[str]) -> ExecResult:
        with self._lock:
            self.exec_calls.append(list(command))
        return self.exec_handler(instance, command)

    def stop(self, instance: RunningInstance) -> None:
        self.stopped.append(instance)

    def get_runtime_name(self) -> str:
        return "fake"


class InstantProbe(IReadinessProbe):
    def wait_until_ready(self, instance: RunningInstance, timeout: float) -> None:
        return None

    def describe(self) -> str:
        return "instant"


class NeverReadyProbe(IReadinessProbe):
    def wait_until_ready(self, instance: RunningInstance, timeout: float) -> None:
        raise StartupTimeout(
            message="never ready",
            provider_name=instance.label,
            timeout_seconds=timeout,
        )

    def describe(self) -> str:
        return "never"


class FakeAssetBackend(IAssetBackend):
    """Backend whose listing grows as assets are fetched."""

    def __init__(self, listed: set[str] | None = None, supported: bool = True) -> None:
        self.listed: set[str] = set(listed or ())
        self.supported = supported
        self.fetch_calls: list[str] = []
        self.list_calls = 0
        self.fetch_error: Exception | None = None
        self.fetch_delay = 0.0
        self._lock = threading.Lock()

    def list_assets(self, instance: RunningInstance) -> set[str]:
        with self._lock:
            self.list_calls += 1
            return set(self.listed)

    def fetch(self, instance: RunningInstance, asset_id: str) -> None:
        with self._lock:
            self.fetch_calls.append(asset_id)
        time.sleep(self.fetch_delay)
        if self.fetch_error is not None:
            raise self.fetch_error
        with self._lock:
            self.listed.add(asset_id)

    def is_supported(self, instance: RunningInstance, asset_id: str) -> bool:
        return self.supported

    def get_backend_name(self) -> str:
        return "fake-assets"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the developer's environment and caches."""
    return Settings(
        _env_file=None,
        docker_host="",
        check_port_conflicts=False,
        keep_containers=False,
        cache_root=tmp_path / "cache",
        config_path=str(tmp_path / "testbed.yaml"),
        startup_timeout_seconds=5.0,
        probe_interval_seconds=0.01,
    )


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def instant_probes() -> Callable[[ReadinessCheck, Settings], IReadinessProbe]:
    return lambda check, settings: InstantProbe()


@pytest.fixture
def descriptor() -> ServiceDescriptor:
    """Port-listening service on 25433 -> 5432."""
    return ServiceDescriptor(
        label="X",
        image="example/db:1",
        ports=(PortBinding(host_port=25433, container_port=5432),),
        exports={
            "x.host": "{host}",
            "x.port": "{port}",
            "x.url": "db://{host}:{port}/test",
        },
    )


@pytest.fixture
def running_instance() -> RunningInstance:
    return RunningInstance(
        label="Speeches",
        container_id="c0ffee",
        host="127.0.0.1",
        ports={8000: 28001},
    )


@pytest.fixture
def never_ready_probes() -> Callable[[ReadinessCheck, Settings], IReadinessProbe]:
    return lambda check, settings: NeverReadyProbe()


@pytest.fixture
def fake_backend() -> FakeAssetBackend:
    return FakeAssetBackend()
