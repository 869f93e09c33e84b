"""TCP port-listening readiness probe."""

from __future__ import annotations

import socket
import time

import structlog

from ai_testbed.interfaces.readiness_probe import IReadinessProbe
from ai_testbed.models.service import RunningInstance
from ai_testbed.utils.errors import StartupTimeout

logger = structlog.get_logger(logger_name=__name__)


class PortListeningProbe(IReadinessProbe):
    """Ready once a TCP connect to the bound host port succeeds.

    Parameters
    ----------
    container_port:
        Container port whose host mapping is probed; None probes the first
        binding.
    interval:
        Seconds to sleep between attempts.
    """

    def __init__(self, container_port: int | None = None, interval: float = 1.0) -> None:
        self._container_port = container_port
        self._interval = interval

    def wait_until_ready(self, instance: RunningInstance, timeout: float) -> None:
        port = instance.host_port(self._container_port)
        deadline = time.monotonic() + timeout
        attempts = 0
        last_error = ""
        while True:
            attempts += 1
            remaining = deadline - time.monotonic()
            try:
                with socket.create_connection((instance.host, port), timeout=max(0.1, min(remaining, 5.0))):
                    logger.info("service_ready", label=instance.label, probe=self.describe(), attempts=attempts)
                    return
            except OSError as exc:
                last_error = str(exc)
            if time.monotonic() + self._interval > deadline:
                break
            time.sleep(self._interval)

        raise StartupTimeout(
            message=(
                f"{instance.host}:{port} not listening after {timeout:.0f}s "
                f"({attempts} attempts, last error: {last_error})"
            ),
            provider_name=instance.label,
            timeout_seconds=timeout,
        )

    def describe(self) -> str:
        target = self._container_port if self._container_port is not None else "first"
        return f"port listening ({target})"
