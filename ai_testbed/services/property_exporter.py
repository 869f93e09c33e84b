"""Property exporter: running instance -> named connection values.

Each descriptor declares its keys as ``str.format`` templates, e.g.::

    exports={
        "datasource.postgres.url": "postgresql://{host}:{port}/test",
        "datasource.postgres.username": "pg",
        "ai.ollama.embedding.options.model": "{model}",
    }

Templates are rendered against ``host``, ``port``, ``port_<container
port>`` and any *extra* values given at export time.  A template naming an
extra that was not supplied is skipped, so optional keys such as an API
key only appear when set.  A template that is exactly ``{port}`` or
``{port_N}`` renders as an int.

Rendering is a pure function of its inputs; the only side effect of
:meth:`PropertyExporter.export` is writing into the caller's sink.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping, MutableMapping
from string import Formatter
from typing import Any

import structlog

from ai_testbed.models.connection import ConnectionParameters, env_key
from ai_testbed.models.service import RunningInstance, ServiceDescriptor
from ai_testbed.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

PropertySink = MutableMapping[str, Any]

_FORMATTER = Formatter()


class EnvironmentSink(MutableMapping[str, str]):
    """Sink that stores keys as environment variables.

    ``ai.ollama.base-url`` is written as ``AI_OLLAMA_BASE_URL``.  Defaults to
    ``os.environ`` so subprocesses spawned by tests inherit the values.
    Iteration yields the dotted keys written through this sink that are
    still set, not the rest of the environment.
    """

    def __init__(self, environ: MutableMapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ
        self._keys: dict[str, None] = {}

    def __getitem__(self, key: str) -> str:
        return self._environ[env_key(key)]

    def __setitem__(self, key: str, value: Any) -> None:
        self._environ[env_key(key)] = str(value)
        self._keys[key] = None

    def __delitem__(self, key: str) -> None:
        del self._environ[env_key(key)]
        self._keys.pop(key, None)

    def __iter__(self) -> Iterator[str]:
        return (key for key in list(self._keys) if env_key(key) in self._environ)

    def __len__(self) -> int:
        return sum(1 for _ in self)


class PropertyExporter:
    """Renders a descriptor's export templates for a running instance."""

    def build(
        self,
        instance: RunningInstance,
        descriptor: ServiceDescriptor,
        extra: Mapping[str, Any] | None = None,
    ) -> ConnectionParameters:
        fields: dict[str, Any] = {"host": instance.host}
        if instance.ports:
            fields["port"] = instance.port
        for container_port, host_port in instance.ports.items():
            fields[f"port_{container_port}"] = host_port
        fields.update({k: v for k, v in (extra or {}).items() if v is not None})

        values: dict[str, str | int] = {}
        for key, template in descriptor.exports.items():
            names = _field_names(template, descriptor.label)
            missing = names - fields.keys()
            if missing:
                logger.debug("property_skipped", label=descriptor.label, key=key, missing=sorted(missing))
                continue
            values[key] = _render(template, fields)
        return ConnectionParameters(label=descriptor.label, values=values)

    def export(
        self,
        instance: RunningInstance,
        descriptor: ServiceDescriptor,
        sink: PropertySink | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> ConnectionParameters:
        """Build the parameters and write each key into *sink* (if given).

        Re-exporting the same instance writes identical values again.
        """
        params = self.build(instance, descriptor, extra)
        if sink is not None:
            for key, value in params.values.items():
                sink[key] = value
        logger.debug("properties_exported", label=descriptor.label, keys=list(params.values))
        return params


def _field_names(template: str, label: str) -> set[str]:
    try:
        return {name for _, name, _, _ in _FORMATTER.parse(template) if name}
    except ValueError as exc:
        raise ConfigurationError(f"Bad export template {template!r}: {exc}", provider_name=label) from exc


def _render(template: str, fields: Mapping[str, Any]) -> str | int:
    bare = template[1:-1] if template.startswith("{") and template.endswith("}") else None
    if bare is not None and isinstance(fields.get(bare), int):
        return fields[bare]
    return template.format(**fields)
