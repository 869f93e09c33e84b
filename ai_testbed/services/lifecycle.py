"""Lifecycle manager: "ensure service X is running with assets Y".

Control flow of :meth:`LifecycleManager.ensure`:

    registry.start_if_needed   start or reuse, wait for readiness,
                               run the init command on first start
    provisioner.ensure_present for each requested asset
    exporter.export            connection values into the caller's sink

With ``provision_on_first_start_only`` the assets are provisioned inside
the registry's first-start callback, i.e. only by the call that actually
started the container (the Ollama catalog entries work this way).

A process-wide default manager is available through
:func:`get_default_manager`; it is created on first use and its
``shutdown`` is registered with :mod:`atexit`.
"""

from __future__ import annotations

import atexit
import threading
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from ai_testbed.config.settings import Settings
from ai_testbed.interfaces.asset_backend import IAssetBackend
from ai_testbed.interfaces.container_runtime import IContainerRuntime
from ai_testbed.models.asset import AssetRecord
from ai_testbed.models.connection import ConnectionParameters
from ai_testbed.models.service import RunningInstance, ServiceDescriptor
from ai_testbed.services.asset_provisioner import AssetProvisioner, CachePathResolver
from ai_testbed.services.property_exporter import PropertyExporter, PropertySink
from ai_testbed.services.registry import ContainerRegistry

logger = structlog.get_logger(logger_name=__name__)


class LifecycleManager:
    """Facade over registry, provisioner and exporter."""

    def __init__(
        self,
        registry: ContainerRegistry,
        provisioner: AssetProvisioner | None = None,
        exporter: PropertyExporter | None = None,
    ) -> None:
        self.registry = registry
        self.provisioner = provisioner or AssetProvisioner()
        self.exporter = exporter or PropertyExporter()

    @classmethod
    def from_runtime(cls, runtime: IContainerRuntime, settings: Settings) -> LifecycleManager:
        return cls(ContainerRegistry(runtime, settings))

    @property
    def runtime(self) -> IContainerRuntime:
        return self.registry.runtime

    def ensure(
        self,
        descriptor: ServiceDescriptor,
        assets: Iterable[str] = (),
        backend: IAssetBackend | None = None,
        sink: PropertySink | None = None,
        extra: Mapping[str, Any] | None = None,
        provision_on_first_start_only: bool = False,
        cache_path_for: CachePathResolver | None = None,
    ) -> RunningInstance:
        """Start (or reuse) *descriptor*, provision *assets*, export properties.

        Raises
        ------
        ValueError
            If assets are requested without a backend.
        StartupTimeout, InitializationFailure, PortConflict, ProvisioningError
            Propagated unchanged from the step that failed.
        """
        assets = list(assets)
        if assets and backend is None:
            raise ValueError(f"{descriptor.label}: assets requested but no asset backend given")

        def provision(instance: RunningInstance) -> None:
            self.provisioner.ensure_all(instance, assets, backend, cache_path_for=cache_path_for)

        if provision_on_first_start_only:
            instance = self.registry.start_if_needed(descriptor, on_first_start=provision if assets else None)
        else:
            instance = self.registry.start_if_needed(descriptor)
            if assets:
                provision(instance)

        self.exporter.export(instance, descriptor, sink=sink, extra=extra)
        return instance

    def ensure_asset(
        self,
        instance: RunningInstance,
        asset_id: str,
        backend: IAssetBackend,
        cache_path_for: CachePathResolver | None = None,
    ) -> AssetRecord:
        """Provision one asset into an already running instance."""
        return self.provisioner.ensure_present(
            instance,
            asset_id,
            backend,
            cache_path=cache_path_for(asset_id) if cache_path_for else None,
        )

    def export(
        self,
        instance: RunningInstance,
        descriptor: ServiceDescriptor,
        sink: PropertySink | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> ConnectionParameters:
        return self.exporter.export(instance, descriptor, sink=sink, extra=extra)

    def shutdown(self) -> None:
        logger.info("testbed_shutdown", running=sorted(self.registry.instances()))
        self.registry.shutdown()


# ---------------------------------------------------------------------------
# Process-wide default
# ---------------------------------------------------------------------------

_default_lock = threading.Lock()
_default_manager: LifecycleManager | None = None


def get_default_manager(settings: Settings | None = None) -> LifecycleManager:
    """Return the process-wide manager, creating it (docker-backed) on first call.

    Raises
    ------
    RuntimeUnavailableError
        If the docker daemon cannot be reached.
    """
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            from ai_testbed.providers.runtime.docker_runtime import DockerContainerRuntime

            settings = settings or Settings()
            manager = LifecycleManager.from_runtime(DockerContainerRuntime(settings), settings)
            atexit.register(manager.shutdown)
            _default_manager = manager
            logger.debug("default_manager_created", runtime=manager.runtime.get_runtime_name())
        return _default_manager


def set_default_manager(manager: LifecycleManager | None) -> None:
    """Replace the process-wide manager (tests install one over a fake runtime)."""
    global _default_manager
    with _default_lock:
        _default_manager = manager


def reset_default_manager() -> None:
    """Shut down and forget the process-wide manager, if any."""
    global _default_manager
    with _default_lock:
        manager, _default_manager = _default_manager, None
    if manager is not None:
        atexit.unregister(manager.shutdown)
        manager.shutdown()
