"""YAML override loader.

Configuration is layered (later layers override earlier):

  1. Descriptor defaults defined in ``ai_testbed/containers/``
  2. ``config/testbed.yaml``  -- optional per-service overrides
  3. Environment variables    -- via :class:`Settings`

The YAML file looks like::

    services:
      Pg-vector:
        host_port: 35433
      Ollama-mini:
        image: alpine/ollama:0.13.0
        startup_timeout_seconds: 300

Only the keys in ``_OVERRIDABLE`` are accepted; anything else raises
:class:`ConfigurationError` so typos do not silently fall back to defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ai_testbed.config.settings import Settings
from ai_testbed.models.service import ServiceDescriptor
from ai_testbed.utils.errors import ConfigurationError

_OVERRIDABLE = {"image", "host_port", "host_ports", "environment", "startup_timeout_seconds"}


def load_config(path: str | None = None, settings: Settings | None = None) -> dict:
    """Load the YAML override file and merge environment-based settings.

    Args:
        path: Path to the YAML file; defaults to ``Settings.config_path``.
        settings: Settings instance; a fresh one is created when omitted.

    Returns:
        Fully resolved configuration dictionary with ``services`` and
        ``runtime`` sections.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)
    if config_path.exists():
        with open(config_path) as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc
    else:
        yaml_config = {}

    if not isinstance(yaml_config, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")

    env_overrides = {
        "runtime": {
            "docker_host": settings.docker_host,
            "bind_host": settings.bind_host,
            "keep_containers": settings.keep_containers,
            "startup_timeout_seconds": settings.startup_timeout_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    yaml_config.setdefault("services", {})
    return yaml_config


def service_overrides(config: dict, label: str) -> dict[str, Any]:
    """Return the override block for *label* (empty when absent)."""
    services = config.get("services") or {}
    block = services.get(label) or {}
    if not isinstance(block, dict):
        raise ConfigurationError(f"Overrides for {label!r} must be a mapping", provider_name=label)
    return block


def apply_overrides(descriptor: ServiceDescriptor, overrides: dict[str, Any]) -> ServiceDescriptor:
    """Return a copy of *descriptor* with *overrides* applied.

    ``host_port`` replaces the host port of the first binding;
    ``host_ports`` maps container port -> host port for any binding.
    Values are validated like the descriptor itself; a malformed or
    out-of-range value raises :class:`ConfigurationError`.
    """
    if not overrides:
        return descriptor

    unknown = set(overrides) - _OVERRIDABLE
    if unknown:
        raise ConfigurationError(
            f"Unknown override keys: {', '.join(sorted(unknown))}",
            provider_name=descriptor.label,
        )

    try:
        update = _collect_update(descriptor, overrides)
        return ServiceDescriptor.model_validate({**descriptor.model_dump(), **update})
    except (TypeError, ValueError, AttributeError) as exc:
        # pydantic's ValidationError is a ValueError.
        raise ConfigurationError(
            f"Invalid overrides for {descriptor.label}: {exc}",
            provider_name=descriptor.label,
        ) from exc


def _collect_update(descriptor: ServiceDescriptor, overrides: dict[str, Any]) -> dict[str, Any]:
    update: dict[str, Any] = {}
    if "image" in overrides:
        update["image"] = str(overrides["image"])

    if "environment" in overrides:
        update["environment"] = {**descriptor.environment, **{k: str(v) for k, v in overrides["environment"].items()}}

    host_ports: dict[int, int] = {int(k): int(v) for k, v in (overrides.get("host_ports") or {}).items()}
    if "host_port" in overrides:
        if not descriptor.ports:
            raise ConfigurationError("host_port given but service binds no ports", provider_name=descriptor.label)
        host_ports.setdefault(descriptor.ports[0].container_port, int(overrides["host_port"]))
    if host_ports:
        bound = {p.container_port for p in descriptor.ports}
        stray = set(host_ports) - bound
        if stray:
            raise ConfigurationError(
                f"host_ports names unbound container ports: {sorted(stray)}",
                provider_name=descriptor.label,
            )
        update["ports"] = [
            {**p.model_dump(), "host_port": host_ports.get(p.container_port, p.host_port)} for p in descriptor.ports
        ]

    if "startup_timeout_seconds" in overrides:
        timeout = float(overrides["startup_timeout_seconds"])
        update["readiness"] = [{**check.model_dump(), "timeout_seconds": timeout} for check in descriptor.readiness]

    return update


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
