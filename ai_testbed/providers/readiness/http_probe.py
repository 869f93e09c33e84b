"""HTTP health-endpoint readiness probe."""

from __future__ import annotations

import time

import httpx
import structlog

from ai_testbed.interfaces.readiness_probe import IReadinessProbe
from ai_testbed.models.service import RunningInstance
from ai_testbed.utils.errors import StartupTimeout

logger = structlog.get_logger(logger_name=__name__)


class HttpHealthProbe(IReadinessProbe):
    """Ready once ``GET <path>`` on the mapped port returns *status_code*.

    Connection errors and other status codes count as "not ready yet".

    Parameters
    ----------
    path:
        Health path, e.g. ``/api/tags`` or ``/health``.
    status_code:
        Expected status code.
    container_port:
        Container port whose host mapping is probed; None probes the first
        binding.
    interval:
        Seconds to sleep between attempts.
    transport:
        Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        path: str = "/",
        status_code: int = 200,
        container_port: int | None = None,
        interval: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._path = path if path.startswith("/") else f"/{path}"
        self._status_code = status_code
        self._container_port = container_port
        self._interval = interval
        self._transport = transport

    def wait_until_ready(self, instance: RunningInstance, timeout: float) -> None:
        url = f"{instance.base_url(self._container_port)}{self._path}"
        deadline = time.monotonic() + timeout
        attempts = 0
        last_seen = "no response"

        with httpx.Client(timeout=5.0, transport=self._transport) as client:
            while True:
                attempts += 1
                try:
                    response = client.get(url)
                    if response.status_code == self._status_code:
                        logger.info("service_ready", label=instance.label, probe=self.describe(), attempts=attempts)
                        return
                    last_seen = f"status {response.status_code}"
                except httpx.HTTPError as exc:
                    last_seen = f"{type(exc).__name__}: {exc}"
                if time.monotonic() + self._interval > deadline:
                    break
                time.sleep(self._interval)

        raise StartupTimeout(
            message=(
                f"GET {url} did not return {self._status_code} within {timeout:.0f}s "
                f"({attempts} attempts, last: {last_seen})"
            ),
            provider_name=instance.label,
            timeout_seconds=timeout,
        )

    def describe(self) -> str:
        return f"http GET {self._path} -> {self._status_code}"
