"""Container registry: the single source of truth for running services.

Holds at most one :class:`RunningInstance` per service label for the life of
the process.  ``start_if_needed`` is safe to call from any number of test
threads:

1. Fast path: the label is already registered, so return its handle.
2. Under the label's lock (other labels are not blocked):
   a. re-check the table (another thread may have won the race),
   b. adopt a container that already runs with the label (started by an
      earlier process or by ``python -m ai_testbed.cli start``),
   c. otherwise check the fixed ports, start the container and wait for
      every readiness check,
   d. register the instance, then run the one-time init command and the
      caller's first-start callback.

A failing init command or callback leaves the instance registered; partial
bring-up is not rolled back.  A readiness timeout removes the container and
registers nothing.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from ai_testbed.config.settings import Settings
from ai_testbed.interfaces.container_runtime import IContainerRuntime
from ai_testbed.interfaces.readiness_probe import IReadinessProbe
from ai_testbed.models.service import ReadinessCheck, RunningInstance, ServiceDescriptor, ServiceLabel
from ai_testbed.providers.readiness import build_probe
from ai_testbed.services.port_binder import PortBinder
from ai_testbed.utils.concurrency import KeyedLocks, timed
from ai_testbed.utils.errors import InitializationFailure, TestbedError

logger = structlog.get_logger(logger_name=__name__)

FirstStartHook = Callable[[RunningInstance], None]
ProbeFactory = Callable[[ReadinessCheck, Settings], IReadinessProbe]


class ContainerRegistry:
    """Tracks zero-or-one running instance per service label.

    Parameters
    ----------
    runtime:
        Container runtime used to adopt, start, exec into and stop containers.
    settings:
        Supplies the default startup timeout and the keep-containers flag.
    port_binder:
        Checks fixed host ports before a start; built from *settings* when
        omitted.
    probe_factory:
        Builds a readiness probe per check; tests inject fast fakes here.
    """

    def __init__(
        self,
        runtime: IContainerRuntime,
        settings: Settings,
        port_binder: PortBinder | None = None,
        probe_factory: ProbeFactory = build_probe,
    ) -> None:
        self._runtime = runtime
        self._settings = settings
        self._port_binder = port_binder or PortBinder(settings)
        self._probe_factory = probe_factory
        self._instances: dict[ServiceLabel, RunningInstance] = {}
        # Labels whose container this registry created (and so may remove).
        self._owned: set[ServiceLabel] = set()
        self._locks = KeyedLocks()

    @property
    def runtime(self) -> IContainerRuntime:
        return self._runtime

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def is_running(self, label: ServiceLabel) -> bool:
        """Non-blocking check of the registry table."""
        return label in self._instances

    def get_running(self, label: ServiceLabel) -> RunningInstance | None:
        return self._instances.get(label)

    def instances(self) -> dict[ServiceLabel, RunningInstance]:
        """Snapshot of every registered instance."""
        return dict(self._instances)

    # ------------------------------------------------------------------
    # Start-or-reuse
    # ------------------------------------------------------------------

    def start_if_needed(
        self,
        descriptor: ServiceDescriptor,
        on_first_start: FirstStartHook | None = None,
        label: ServiceLabel | None = None,
    ) -> RunningInstance:
        """Return the running instance for ``descriptor.label``, starting it if absent.

        *label* registers the descriptor under a different name (a second
        copy of the same image, for instance).

        *on_first_start* runs once, right after the init command, only when
        this call actually started the container.  It runs under the label's
        lock, so concurrent callers wait for it to finish.
        """
        if label is not None and label != descriptor.label:
            descriptor = descriptor.model_copy(update={"label": label})
        label = descriptor.label
        existing = self._instances.get(label)
        if existing is not None:
            return existing

        with self._locks.hold(label):
            existing = self._instances.get(label)
            if existing is not None:
                return existing

            adopted = self._runtime.find_running(label)
            if adopted is not None:
                instance = self._align_ports(adopted, descriptor)
                self._wait_until_ready(descriptor, instance)
                self._instances[label] = instance
                logger.info(
                    "container_adopted",
                    label=label,
                    container_id=instance.container_id[:12],
                    ports=instance.ports,
                )
                return instance

            self._port_binder.ensure_free(descriptor)
            with timed("container_start", logger, label=label, image=descriptor.image):
                instance = self._runtime.start(descriptor)
                try:
                    self._wait_until_ready(descriptor, instance)
                except Exception:
                    self._discard(instance)
                    raise

            self._instances[label] = instance
            self._owned.add(label)

            self._run_init_command(descriptor, instance)
            if on_first_start is not None:
                on_first_start(instance)
            return instance

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        """Remove every container this registry started and clear the table.

        Adopted containers are left running; so is everything when
        ``Settings.keep_containers`` is set.
        """
        for label, instance in list(self._instances.items()):
            if self._settings.keep_containers or label not in self._owned:
                logger.info("container_kept", label=label)
                continue
            try:
                self._runtime.stop(instance)
            except TestbedError as exc:
                logger.warning("container_stop_failed", label=label, error=str(exc))
        self._instances.clear()
        self._owned.clear()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _wait_until_ready(self, descriptor: ServiceDescriptor, instance: RunningInstance) -> None:
        for check in descriptor.readiness:
            probe = self._probe_factory(check, self._settings)
            timeout = check.timeout_seconds or self._settings.startup_timeout_seconds
            logger.debug("waiting_for_service", label=descriptor.label, probe=probe.describe(), timeout=timeout)
            probe.wait_until_ready(instance, timeout)

    def _run_init_command(self, descriptor: ServiceDescriptor, instance: RunningInstance) -> None:
        if not descriptor.init_command:
            return
        result = self._runtime.exec(instance, list(descriptor.init_command))
        if not result.ok:
            logger.error("post_start_hook_failed", label=descriptor.label, exit_code=result.exit_code)
            raise InitializationFailure(
                message=(
                    f"Init command failed with exit code {result.exit_code}.\n"
                    f"STDOUT:\n{result.stdout}\nSTDERR:\n{result.stderr}"
                ),
                provider_name=descriptor.label,
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        logger.info("post_start_hook_finished", label=descriptor.label)

    def _discard(self, instance: RunningInstance) -> None:
        try:
            self._runtime.stop(instance)
        except TestbedError as exc:
            logger.warning("container_cleanup_failed", label=instance.label, error=str(exc))

    @staticmethod
    def _align_ports(instance: RunningInstance, descriptor: ServiceDescriptor) -> RunningInstance:
        """Order the adopted instance's ports like the descriptor's bindings."""
        ports = {
            b.container_port: instance.ports.get(b.container_port, b.host_port)
            for b in descriptor.ports
        }
        return instance.model_copy(update={"ports": ports})
