"""Abstract base class for readiness probes."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ai_testbed.models.service import RunningInstance


# Concrete implementations: PortListeningProbe, HttpHealthProbe
# Located in: ai_testbed/providers/readiness/
class IReadinessProbe(ABC):
    """Blocks the caller until a started service can accept requests."""

    @abstractmethod
    def wait_until_ready(self, instance: RunningInstance, timeout: float) -> None:
        """Poll *instance* until ready or *timeout* seconds have elapsed.

        Raises
        ------
        ai_testbed.utils.errors.StartupTimeout
            If the readiness signal was not observed within *timeout*.
        """

    @abstractmethod
    def describe(self) -> str:
        """Human-readable description for logs, e.g. ``"http GET /health -> 200"``."""
