"""Base class for the shared test containers in the catalog.

A catalog entry knows three things about its service: the descriptor
(image, fixed ports, environment, mounts, readiness), which models it can
provision, and which connection keys it exports.  Everything else (reuse,
locking, readiness waits, provisioning, export) is delegated to the
:class:`~ai_testbed.services.lifecycle.LifecycleManager`.

Typical use from a pytest fixture::

    @pytest.fixture(scope="session")
    def pg_params():
        return PgVectorContainer().start_if_needed()

Without an explicit manager the process-wide default is used, so every test
module shares one running container per label.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, ClassVar

from ai_testbed.config.loader import apply_overrides, load_config, service_overrides
from ai_testbed.config.settings import Settings
from ai_testbed.models.connection import ConnectionParameters
from ai_testbed.models.service import RunningInstance, ServiceDescriptor
from ai_testbed.services.lifecycle import LifecycleManager, get_default_manager
from ai_testbed.services.property_exporter import PropertySink

ModelRef = str | Enum


class SharedContainer(ABC):
    """One backing service shared by every test in the process."""

    label: ClassVar[str]

    def __init__(
        self,
        manager: LifecycleManager | None = None,
        settings: Settings | None = None,
        config: dict | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._manager = manager
        self._config = config
        self._descriptor: ServiceDescriptor | None = None

    @abstractmethod
    def build_descriptor(self) -> ServiceDescriptor:
        """Default descriptor, before overrides from the YAML file."""

    @property
    def manager(self) -> LifecycleManager:
        if self._manager is None:
            self._manager = get_default_manager(self.settings)
        return self._manager

    @property
    def descriptor(self) -> ServiceDescriptor:
        if self._descriptor is None:
            config = self._config if self._config is not None else load_config(settings=self.settings)
            self._descriptor = apply_overrides(self.build_descriptor(), service_overrides(config, self.label))
        return self._descriptor

    def start_if_needed(
        self,
        sink: PropertySink | None = None,
        models: Sequence[ModelRef] = (),
    ) -> ConnectionParameters:
        """Start or reuse the service and return its connection parameters.

        Services without model provisioning ignore *models*.
        """
        instance = self.manager.ensure(self.descriptor)
        return self._export(instance, sink)

    def get_running(self) -> RunningInstance | None:
        return self.manager.registry.get_running(self.label)

    def _export(
        self,
        instance: RunningInstance,
        sink: PropertySink | None,
        extra: Mapping[str, Any] | None = None,
    ) -> ConnectionParameters:
        return self.manager.export(instance, self.descriptor, sink=sink, extra=extra)


def model_name(model: ModelRef) -> str:
    """Name of a model given as a plain string or a catalog enum member."""
    if isinstance(model, Enum):
        return getattr(model, "model_name", model.value)
    return model
