"""Service layer: registry, port binder, asset provisioner, exporter, lifecycle manager."""

from ai_testbed.services.asset_provisioner import AssetProvisioner
from ai_testbed.services.lifecycle import (
    LifecycleManager,
    get_default_manager,
    reset_default_manager,
    set_default_manager,
)
from ai_testbed.services.port_binder import PortBinder
from ai_testbed.services.property_exporter import EnvironmentSink, PropertyExporter
from ai_testbed.services.registry import ContainerRegistry

__all__ = [
    "AssetProvisioner",
    "ContainerRegistry",
    "EnvironmentSink",
    "LifecycleManager",
    "PortBinder",
    "PropertyExporter",
    "get_default_manager",
    "reset_default_manager",
    "set_default_manager",
]
