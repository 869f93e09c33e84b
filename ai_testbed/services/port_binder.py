"""Fixed host-port binding.

Every service publishes its internal port on a fixed, well-known host port
(Pg-vector on 25433, Ollama-mini on 11434, ...).  Client configuration stays
stable across runs, and a container started by hand with the CLI is
reachable at the same address the tests expect.

Before a container is created the binder checks that each fixed port is
free.  An occupied port means an unrelated process holds it, since the
registry adopts testbed containers before it gets here, and is reported as
:class:`PortConflict`.
"""

from __future__ import annotations

import socket

import structlog

from ai_testbed.config.settings import Settings
from ai_testbed.models.service import ServiceDescriptor
from ai_testbed.utils.errors import PortConflict

logger = structlog.get_logger(logger_name=__name__)


class PortBinder:
    """Maps fixed host ports to container ports and checks availability."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def port_map(self, descriptor: ServiceDescriptor) -> dict[str, tuple[str, int]]:
        """Docker-SDK ``ports`` argument, e.g. ``{"5432/tcp": ("127.0.0.1", 25433)}``."""
        return {
            binding.container_key: (self._settings.bind_host, binding.host_port)
            for binding in descriptor.ports
        }

    def ensure_free(self, descriptor: ServiceDescriptor) -> None:
        """Raise :class:`PortConflict` if any fixed host port is unavailable."""
        seen: set[int] = set()
        for binding in descriptor.ports:
            if binding.host_port in seen:
                raise PortConflict(
                    message=f"Host port {binding.host_port} is bound twice",
                    provider_name=descriptor.label,
                    port=binding.host_port,
                )
            seen.add(binding.host_port)

        if not self._settings.check_port_conflicts:
            return

        for binding in descriptor.ports:
            if not self.is_port_free(self._settings.bind_host, binding.host_port):
                logger.error("port_conflict", label=descriptor.label, port=binding.host_port)
                raise PortConflict(
                    message=(
                        f"Host port {binding.host_port} (-> {binding.container_key}) is already "
                        f"in use by another process"
                    ),
                    provider_name=descriptor.label,
                    port=binding.host_port,
                )

    @staticmethod
    def is_port_free(host: str, port: int) -> bool:
        """Return True if *port* can be bound on *host* right now."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            # Ignore sockets lingering in TIME_WAIT from a previous run.
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind((host or "0.0.0.0", port))
            except OSError:
                return False
        return True
