"""Abstract base class for asset (model) backends.

A backend knows how one kind of service lists and fetches models: the
Ollama CLI inside the container, or an HTTP ``/v1/models`` API.  The
provisioning protocol itself (cache hint, presence check, fetch once) lives
in :class:`~ai_testbed.services.asset_provisioner.AssetProvisioner` and is
the same for every backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ai_testbed.models.service import RunningInstance


# Concrete implementations: OllamaCliBackend, HttpModelBackend
# Located in: ai_testbed/providers/assets/
class IAssetBackend(ABC):
    """Contract for listing and fetching named models inside a service."""

    @abstractmethod
    def list_assets(self, instance: RunningInstance) -> set[str]:
        """Return the names of the models currently available in *instance*.

        Raises
        ------
        ai_testbed.utils.errors.ProvisioningError
            If the listing call fails or its output cannot be decoded.
        """

    @abstractmethod
    def fetch(self, instance: RunningInstance, asset_id: str) -> None:
        """Pull/download *asset_id* into *instance*, blocking until done.

        *asset_id* is passed verbatim (including any ``:tag``).

        Raises
        ------
        ai_testbed.utils.errors.ProvisioningError
            With the status/exit code and response payload on failure.
        """

    def is_supported(self, instance: RunningInstance, asset_id: str) -> bool:
        """Return False if the service cannot serve *asset_id* at all.

        Backends without a model registry accept everything.
        """
        return True

    @abstractmethod
    def get_backend_name(self) -> str:
        """Short identifier used in logs and errors, e.g. ``"ollama-cli"``."""
