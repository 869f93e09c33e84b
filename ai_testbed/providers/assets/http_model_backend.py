"""HTTP model backend for OpenAI-compatible model servers.

Speaches and transformers-inference both expose:

    GET  /v1/models          -> currently available models
    POST /v1/models/{id}     -> download/load a model (no body)

Speaches additionally serves ``GET /v1/registry`` listing every model it
*could* download; when a ``registry_path`` is configured, ids missing from
it are rejected before any download is attempted.

Model ids contain ``/`` (``Systran/faster-whisper-base``) and are
percent-encoded into a single path segment.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog

from ai_testbed.config.settings import Settings
from ai_testbed.interfaces.asset_backend import IAssetBackend
from ai_testbed.models.asset import is_listed
from ai_testbed.models.service import RunningInstance
from ai_testbed.providers.assets.listing_decoders import decode_listing
from ai_testbed.utils.errors import ProvisioningError

logger = structlog.get_logger(logger_name=__name__)


class HttpModelBackend(IAssetBackend):
    """Lists and fetches models over a ``/v1/models`` style HTTP API.

    Parameters
    ----------
    settings:
        Supplies connect and fetch timeouts.
    list_path, fetch_path:
        API paths; ``fetch_path`` is formatted with the encoded ``id``.
    registry_path:
        Optional path of a "supported models" listing.
    container_port:
        Container port of the API; None means the first binding.
    headers:
        Extra request headers (e.g. ``Authorization`` when an API key is set).
    transport:
        Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        settings: Settings,
        list_path: str = "/v1/models",
        fetch_path: str = "/v1/models/{id}",
        registry_path: str | None = None,
        container_port: int | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._list_path = list_path
        self._fetch_path = fetch_path
        self._registry_path = registry_path
        self._container_port = container_port
        self._headers = headers or {}
        self._transport = transport

    # ------------------------------------------------------------------
    # IAssetBackend implementation
    # ------------------------------------------------------------------

    def list_assets(self, instance: RunningInstance) -> set[str]:
        url = f"{instance.base_url(self._container_port)}{self._list_path}"
        try:
            with self._client(self._settings.fetch_timeout_seconds) as client:
                response = client.get(url)
        except httpx.HTTPError as exc:
            raise ProvisioningError(
                message=f"GET {url} failed: {exc}",
                provider_name=instance.label,
                payload=str(exc),
            ) from exc
        if response.status_code != 200:
            raise ProvisioningError(
                message=f"GET {url} returned {response.status_code}",
                provider_name=instance.label,
                status=response.status_code,
                payload=response.text,
            )
        return set(decode_listing(response.text, source=instance.label))

    def fetch(self, instance: RunningInstance, asset_id: str) -> None:
        url = f"{instance.base_url(self._container_port)}{self._fetch_path.format(id=quote(asset_id, safe=''))}"
        try:
            with self._client(self._settings.fetch_timeout_seconds) as client:
                response = client.post(url)
        except httpx.HTTPError as exc:
            raise ProvisioningError(
                message=f"POST {url} failed: {exc}",
                provider_name=instance.label,
                payload=str(exc),
            ) from exc
        if not response.is_success:
            raise ProvisioningError(
                message=f"Failed to download model {asset_id}, status code: {response.status_code}",
                provider_name=instance.label,
                status=response.status_code,
                payload=response.text,
            )

    def is_supported(self, instance: RunningInstance, asset_id: str) -> bool:
        """Check *asset_id* against the registry listing.

        An unreachable or non-200 registry counts as "unsupported" and is
        logged as a warning.
        """
        if self._registry_path is None:
            return True
        url = f"{instance.base_url(self._container_port)}{self._registry_path}"
        try:
            with self._client(30.0) as client:
                response = client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("model_registry_unreachable", label=instance.label, url=url, error=str(exc))
            return False
        if response.status_code != 200:
            logger.warning("model_registry_query_failed", label=instance.label, status=response.status_code)
            return False
        try:
            return is_listed(asset_id, decode_listing(response.text, source=instance.label))
        except ProvisioningError:
            # Unknown registry shape: fall back to a plain text search.
            return asset_id in response.text

    def get_backend_name(self) -> str:
        return "http-models"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _client(self, read_timeout: float) -> httpx.Client:
        timeout = httpx.Timeout(read_timeout, connect=self._settings.connect_timeout_seconds)
        return httpx.Client(timeout=timeout, headers=self._headers, transport=self._transport)
