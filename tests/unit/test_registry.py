"""Unit tests for ContainerRegistry: start-once, adoption, teardown."""

from __future__ import annotations

import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from ai_testbed.config.settings import Settings
from ai_testbed.interfaces.container_runtime import ExecResult
from ai_testbed.models.service import PortBinding, RunningInstance, ServiceDescriptor
from ai_testbed.services.registry import ContainerRegistry
from ai_testbed.utils.errors import InitializationFailure, PortConflict, StartupTimeout, TestbedError


@pytest.fixture
def registry(fake_runtime, settings: Settings, instant_probes) -> ContainerRegistry:
    return ContainerRegistry(fake_runtime, settings, probe_factory=instant_probes)


# ======================================================================
# Start-or-reuse
# ======================================================================


class TestStartIfNeeded:
    def test_starts_once(self, registry, fake_runtime, descriptor: ServiceDescriptor) -> None:
        first = registry.start_if_needed(descriptor)
        second = registry.start_if_needed(descriptor)

        assert first is second
        assert len(fake_runtime.started) == 1
        assert first.ports == {5432: 25433}
        assert registry.is_running("X")

    def test_concurrent_callers_share_one_start(self, registry, fake_runtime, descriptor) -> None:
        fake_runtime.start_delay = 0.05

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(registry.start_if_needed, descriptor) for _ in range(2)]
            instances = [f.result(timeout=5) for f in futures]

        assert len(fake_runtime.started) == 1
        assert instances[0] is instances[1]
        assert [i.port for i in instances] == [25433, 25433]

    def test_different_labels_start_in_parallel(self, registry, fake_runtime, descriptor) -> None:
        # Both starts must be in flight at once for the barrier to release.
        barrier = threading.Barrier(2, timeout=2)
        original_start = fake_runtime.start

        def start(desc: ServiceDescriptor) -> RunningInstance:
            barrier.wait()
            return original_start(desc)

        fake_runtime.start = start
        other = descriptor.model_copy(
            update={"label": "Y", "ports": (PortBinding(host_port=25434, container_port=5432),)}
        )

        with ThreadPoolExecutor(max_workers=2) as pool:
            a = pool.submit(registry.start_if_needed, descriptor)
            b = pool.submit(registry.start_if_needed, other)
            assert a.result(timeout=5).label == "X"
            assert b.result(timeout=5).label == "Y"

    def test_label_override(self, registry, fake_runtime, descriptor) -> None:
        instance = registry.start_if_needed(descriptor, label="X-copy")

        assert instance.label == "X-copy"
        assert fake_runtime.started[0].label == "X-copy"
        assert registry.is_running("X-copy")
        assert not registry.is_running("X")

    def test_instances_snapshot(self, registry, descriptor) -> None:
        registry.start_if_needed(descriptor)
        snapshot = registry.instances()
        snapshot.clear()
        assert registry.get_running("X") is not None

    def test_get_running_unknown_label(self, registry) -> None:
        assert registry.get_running("nope") is None
        assert registry.is_running("nope") is False


# ======================================================================
# Readiness and port conflicts
# ======================================================================


class TestStartFailures:
    def test_timeout_registers_nothing(self, fake_runtime, settings, never_ready_probes, descriptor) -> None:
        registry = ContainerRegistry(fake_runtime, settings, probe_factory=never_ready_probes)

        with pytest.raises(StartupTimeout):
            registry.start_if_needed(descriptor)

        assert not registry.is_running("X")
        assert [i.container_id for i in fake_runtime.stopped] == ["fake-0001"]

    def test_probe_error_removes_started_container(self, fake_runtime, settings, descriptor) -> None:
        def broken_factory(check, s):
            raise RuntimeError("no probe for check")

        registry = ContainerRegistry(fake_runtime, settings, probe_factory=broken_factory)

        with pytest.raises(RuntimeError, match="no probe for check"):
            registry.start_if_needed(descriptor)

        assert not registry.is_running("X")
        assert [i.container_id for i in fake_runtime.stopped] == ["fake-0001"]

    def test_timeout_uses_check_timeout_or_default(self, fake_runtime, settings) -> None:
        seen: list[float] = []
        probe = MagicMock()
        probe.wait_until_ready.side_effect = lambda instance, timeout: seen.append(timeout)
        registry = ContainerRegistry(fake_runtime, settings, probe_factory=lambda check, s: probe)

        descriptor = ServiceDescriptor.model_validate(
            {
                "label": "Milvus",
                "image": "img",
                "ports": [
                    {"host_port": 19530, "container_port": 19530},
                    {"host_port": 9091, "container_port": 9091},
                ],
                "readiness": [
                    {"container_port": 19530},
                    {"kind": "http", "container_port": 9091, "path": "/healthz", "timeout_seconds": 300},
                ],
            }
        )
        registry.start_if_needed(descriptor)

        assert seen == [settings.startup_timeout_seconds, 300.0]

    def test_occupied_port_is_reported_before_start(self, fake_runtime, settings, instant_probes) -> None:
        with socket.socket() as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen(1)
            port = sock.getsockname()[1]
            registry = ContainerRegistry(
                fake_runtime,
                settings.model_copy(update={"check_port_conflicts": True}),
                probe_factory=instant_probes,
            )
            descriptor = ServiceDescriptor(
                label="X", image="img", ports=(PortBinding(host_port=port, container_port=5432),)
            )

            with pytest.raises(PortConflict):
                registry.start_if_needed(descriptor)

        assert fake_runtime.started == []
        assert not registry.is_running("X")


# ======================================================================
# Post-start hook
# ======================================================================


class TestInitCommand:
    def test_runs_once_after_first_start(self, registry, fake_runtime, descriptor) -> None:
        descriptor = descriptor.model_copy(update={"init_command": ("bash", "-lc", "echo ok")})

        registry.start_if_needed(descriptor)
        registry.start_if_needed(descriptor)

        assert fake_runtime.exec_calls == [["bash", "-lc", "echo ok"]]

    def test_failure_keeps_instance_registered(self, registry, fake_runtime, descriptor) -> None:
        fake_runtime.exec_handler = lambda instance, command: ExecResult(1, stdout="out", stderr="extension missing")
        descriptor = descriptor.model_copy(update={"init_command": ("psql", "-c", "CREATE EXTENSION vector")})

        with pytest.raises(InitializationFailure) as info:
            registry.start_if_needed(descriptor)

        assert info.value.exit_code == 1
        assert info.value.stderr == "extension missing"
        assert "extension missing" in str(info.value)
        assert registry.is_running("X")

        # The half-initialized instance is reused and the hook is not retried.
        registry.start_if_needed(descriptor)
        assert len(fake_runtime.exec_calls) == 1
        assert len(fake_runtime.started) == 1

    def test_first_start_callback(self, registry, descriptor) -> None:
        calls: list[RunningInstance] = []

        first = registry.start_if_needed(descriptor, on_first_start=calls.append)
        registry.start_if_needed(descriptor, on_first_start=calls.append)

        assert calls == [first]


# ======================================================================
# Adoption
# ======================================================================


class TestAdoption:
    def test_adopts_running_container(self, registry, fake_runtime, descriptor) -> None:
        descriptor = descriptor.model_copy(update={"init_command": ("true",)})
        fake_runtime.preexisting["X"] = RunningInstance(
            label="X", container_id="cli-started", host="127.0.0.1", ports={5432: 25433}, adopted=True
        )
        callback = MagicMock()

        instance = registry.start_if_needed(descriptor, on_first_start=callback)

        assert instance.container_id == "cli-started"
        assert instance.adopted is True
        assert fake_runtime.started == []
        assert fake_runtime.exec_calls == []
        callback.assert_not_called()

    def test_adopted_ports_follow_descriptor_order(self, registry, fake_runtime) -> None:
        descriptor = ServiceDescriptor(
            label="Milvus",
            image="img",
            ports=(
                PortBinding(host_port=19530, container_port=19530),
                PortBinding(host_port=9091, container_port=9091),
            ),
        )
        fake_runtime.preexisting["Milvus"] = RunningInstance(
            label="Milvus", container_id="m", host="127.0.0.1", ports={9091: 9091, 19530: 19530}, adopted=True
        )

        instance = registry.start_if_needed(descriptor)

        assert list(instance.ports) == [19530, 9091]
        assert instance.port == 19530


# ======================================================================
# Shutdown
# ======================================================================


class TestShutdown:
    def test_stops_owned_only(self, registry, fake_runtime, descriptor) -> None:
        fake_runtime.preexisting["Y"] = RunningInstance(
            label="Y", container_id="adopted", host="127.0.0.1", ports={5432: 25434}, adopted=True
        )
        registry.start_if_needed(descriptor)
        registry.start_if_needed(descriptor.model_copy(update={"label": "Y"}))

        registry.shutdown()

        assert [i.label for i in fake_runtime.stopped] == ["X"]
        assert registry.instances() == {}

    def test_keep_containers(self, fake_runtime, settings, instant_probes, descriptor) -> None:
        registry = ContainerRegistry(
            fake_runtime,
            settings.model_copy(update={"keep_containers": True}),
            probe_factory=instant_probes,
        )
        registry.start_if_needed(descriptor)

        registry.shutdown()

        assert fake_runtime.stopped == []
        assert not registry.is_running("X")

    def test_stop_errors_do_not_abort_shutdown(self, registry, fake_runtime, descriptor) -> None:
        registry.start_if_needed(descriptor)
        registry.start_if_needed(
            descriptor.model_copy(update={"label": "Y", "ports": (PortBinding(host_port=25434, container_port=5432),)})
        )
        stopped: list[str] = []

        def stop(instance: RunningInstance) -> None:
            stopped.append(instance.label)
            if instance.label == "X":
                raise TestbedError("daemon went away")

        fake_runtime.stop = stop
        registry.shutdown()

        assert stopped == ["X", "Y"]
        assert registry.instances() == {}

    def test_start_after_shutdown_starts_again(self, registry, fake_runtime, descriptor) -> None:
        registry.start_if_needed(descriptor)
        registry.shutdown()
        registry.start_if_needed(descriptor)
        assert len(fake_runtime.started) == 2
