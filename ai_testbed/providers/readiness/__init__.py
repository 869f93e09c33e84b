"""Readiness probes and the factory that picks one per readiness check."""

from __future__ import annotations

from ai_testbed.config.settings import Settings
from ai_testbed.interfaces.readiness_probe import IReadinessProbe
from ai_testbed.models.service import ReadinessCheck, ReadinessKind
from ai_testbed.providers.readiness.http_probe import HttpHealthProbe
from ai_testbed.providers.readiness.port_probe import PortListeningProbe


def build_probe(check: ReadinessCheck, settings: Settings) -> IReadinessProbe:
    """Return the probe implementing *check*."""
    if check.kind is ReadinessKind.HTTP_HEALTH:
        return HttpHealthProbe(
            path=check.path,
            status_code=check.status_code,
            container_port=check.container_port,
            interval=settings.probe_interval_seconds,
        )
    return PortListeningProbe(
        container_port=check.container_port,
        interval=settings.probe_interval_seconds,
    )


__all__ = ["HttpHealthProbe", "PortListeningProbe", "build_probe"]
