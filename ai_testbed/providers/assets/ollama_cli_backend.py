"""Ollama model backend driven through the ``ollama`` CLI inside the container.

``ollama list`` prints a table whose first column is the model name;
``ollama pull <model>`` blocks until the model is downloaded.  Both run via
the container runtime's exec, so no port other than the API needs to be
reachable from the host.
"""

from __future__ import annotations

import structlog

from ai_testbed.interfaces.asset_backend import IAssetBackend
from ai_testbed.interfaces.container_runtime import ExecResult, IContainerRuntime
from ai_testbed.models.service import RunningInstance
from ai_testbed.providers.assets.listing_decoders import decode_cli_table, decode_listing
from ai_testbed.utils.errors import ProvisioningError, TestbedError

logger = structlog.get_logger(logger_name=__name__)


class OllamaCliBackend(IAssetBackend):
    """Lists and pulls Ollama models with ``ollama list`` / ``ollama pull``."""

    def __init__(self, runtime: IContainerRuntime, executable: str = "ollama") -> None:
        self._runtime = runtime
        self._executable = executable

    def list_assets(self, instance: RunningInstance) -> set[str]:
        result = self._exec(instance, [self._executable, "list"])
        if not result.ok:
            raise ProvisioningError(
                message=f"{self._executable} list failed: {result.stderr.strip() or result.stdout.strip()}",
                provider_name=instance.label,
                status=result.exit_code,
                payload=f"{result.stderr}\n{result.stdout}",
            )
        return set(decode_listing(result.stdout, decoders=(decode_cli_table,), source=instance.label))

    def fetch(self, instance: RunningInstance, asset_id: str) -> None:
        result = self._exec(instance, [self._executable, "pull", asset_id])
        if not result.ok:
            raise ProvisioningError(
                message=f"{self._executable} pull {asset_id} failed",
                provider_name=instance.label,
                status=result.exit_code,
                payload=f"{result.stderr}\n{result.stdout}",
            )

    def get_backend_name(self) -> str:
        return "ollama-cli"

    def _exec(self, instance: RunningInstance, command: list[str]) -> ExecResult:
        try:
            return self._runtime.exec(instance, command)
        except TestbedError as exc:
            logger.warning("ollama_exec_failed", label=instance.label, command=command[1], error=str(exc))
            raise ProvisioningError(
                message=f"{' '.join(command[:2])} could not be run: {exc.message}",
                provider_name=instance.label,
                payload=str(exc),
            ) from exc
