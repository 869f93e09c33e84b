"""Service descriptor and running-instance models.

A :class:`ServiceDescriptor` is the static recipe for one backing service:
image, fixed port bindings, environment, bind mounts, readiness checks and
the optional one-time init command.  It is built once (module import or
first use) and never mutated; per-run tweaks from the override file produce
a new copy via ``model_copy(update={...})``.

A :class:`RunningInstance` is the handle the registry hands out once a
service is up.  Consumers get it read-only (the model is frozen) and the
registry is the only owner.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Opaque, process-unique name of one logical backing service ("Pg-vector").
ServiceLabel = str


class ReadinessKind(str, Enum):  # noqa: UP042
    """How a started service proves it can accept requests."""

    PORT_LISTENING = "port"  # TCP connect to the bound host port succeeds
    HTTP_HEALTH = "http"     # GET <path> returns the expected status code


class PortBinding(BaseModel):
    """Fixed mapping from a host port to a container-internal port."""

    model_config = ConfigDict(frozen=True)

    host_port: int = Field(gt=0, lt=65536)
    container_port: int = Field(gt=0, lt=65536)
    protocol: str = "tcp"

    @property
    def container_key(self) -> str:
        """Docker-style port key, e.g. ``"5432/tcp"``."""
        return f"{self.container_port}/{self.protocol}"


class ReadinessCheck(BaseModel):
    """One readiness rule; a descriptor may carry several (all must pass)."""

    model_config = ConfigDict(frozen=True)

    kind: ReadinessKind = ReadinessKind.PORT_LISTENING
    # Container port the check targets; None means the first binding.
    container_port: int | None = None
    path: str = "/"
    status_code: int = 200
    # None means "use Settings.startup_timeout_seconds".
    timeout_seconds: float | None = Field(default=None, gt=0)


class BindMount(BaseModel):
    """Host directory mounted read-write into the container (model caches)."""

    model_config = ConfigDict(frozen=True)

    host_path: Path
    container_path: str
    read_only: bool = False


class ServiceDescriptor(BaseModel):
    """Immutable configuration for one backing service.

    ``exports`` maps configuration keys to ``str.format`` templates that the
    property exporter renders against a running instance.  Available fields
    are ``host``, ``port`` (first binding), ``port_<container port>`` for
    every binding, plus any extra values supplied at export time.
    """

    model_config = ConfigDict(frozen=True)

    label: ServiceLabel = Field(min_length=1)
    image: str = Field(min_length=1)
    ports: tuple[PortBinding, ...] = ()
    environment: dict[str, str] = Field(default_factory=dict)
    mounts: tuple[BindMount, ...] = ()
    command: tuple[str, ...] | None = None
    readiness: tuple[ReadinessCheck, ...] = (ReadinessCheck(),)
    # Executed inside the container after the first start only.
    init_command: tuple[str, ...] | None = None
    exports: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_readiness_ports(self) -> ServiceDescriptor:
        """Every readiness check must target a bound container port."""
        bound = {p.container_port for p in self.ports}
        for check in self.readiness:
            if check.container_port is not None and check.container_port not in bound:
                raise ValueError(
                    f"readiness check targets container port {check.container_port} "
                    f"which is not bound for {self.label!r}"
                )
        if self.readiness and not self.ports:
            raise ValueError(f"{self.label!r} has readiness checks but no port bindings")
        return self

    def binding_for(self, container_port: int | None) -> PortBinding:
        """Return the binding for *container_port* (first binding for None)."""
        if container_port is None:
            return self.ports[0]
        for binding in self.ports:
            if binding.container_port == container_port:
                return binding
        raise KeyError(container_port)


class RunningInstance(BaseModel):
    """Handle to a started service.

    ``ports`` maps container port -> resolved host port.  ``adopted`` is
    True when the registry found the container already running (started by
    an earlier run or by the CLI) instead of starting it itself.
    """

    model_config = ConfigDict(frozen=True)

    label: ServiceLabel
    container_id: str
    host: str
    ports: dict[int, int] = Field(default_factory=dict)
    adopted: bool = False

    @property
    def port(self) -> int:
        """Host port of the first binding."""
        return next(iter(self.ports.values()))

    def host_port(self, container_port: int | None = None) -> int:
        """Resolved host port for *container_port* (first binding for None)."""
        if container_port is None:
            return self.port
        return self.ports[container_port]

    def base_url(self, container_port: int | None = None, scheme: str = "http") -> str:
        return f"{scheme}://{self.host}:{self.host_port(container_port)}"
