"""Abstract base class for container runtimes.

The registry never talks to docker directly; it goes through this contract
so unit tests can inject an in-memory fake and so another runtime (podman,
a remote daemon) can be plugged in without touching lifecycle logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ai_testbed.models.service import RunningInstance, ServiceDescriptor, ServiceLabel

# Docker label key every testbed container is tagged with.
LABEL_KEY = "ai-testbed.label"


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a command executed inside a running container."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# Concrete implementation: DockerContainerRuntime (providers/runtime/docker_runtime.py)
class IContainerRuntime(ABC):
    """Contract for starting, inspecting and stopping service containers."""

    @abstractmethod
    def find_running(self, label: ServiceLabel) -> RunningInstance | None:
        """Return the running container tagged with *label*, if any.

        Used to adopt containers started by an earlier process (for example
        ``python -m ai_testbed.cli start``).  The returned instance has
        ``adopted=True``.
        """

    @abstractmethod
    def start(self, descriptor: ServiceDescriptor) -> RunningInstance:
        """Create and start a container for *descriptor*.

        Returns as soon as the runtime reports the container as started;
        readiness is the prober's job.

        Raises
        ------
        ai_testbed.utils.errors.PortConflict
            If the runtime refuses a fixed host port.
        ai_testbed.utils.errors.TestbedError
            For any other start failure.
        """

    @abstractmethod
    def exec(self, instance: RunningInstance, command: list[str]) -> ExecResult:
        """Run *command* inside the container and wait for it to finish."""

    @abstractmethod
    def stop(self, instance: RunningInstance) -> None:
        """Stop and remove the container.  No-op if it is already gone."""

    @abstractmethod
    def get_runtime_name(self) -> str:
        """Short identifier used as ``provider_name`` in errors, e.g. ``"docker"``."""
