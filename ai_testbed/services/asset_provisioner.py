"""Idempotent asset (model) provisioning.

``ensure_present`` makes sure a named model is available inside a running
service and downloads it at most once:

  1. Local-cache hint: if the service mounts a host cache directory and the
     asset's directory there is non-empty, note it (logged only).
  2. Support check: backends with a model registry reject unknown ids
     before anything is downloaded.
  3. Presence check: the backend's listing is authoritative.  ``name:tag``
     counts as present when either ``name:tag`` or bare ``name`` is listed.
  4. Fetch if absent, always with the exact id requested.

Calls for the same (container, asset) pair are serialized, so two threads
never both fetch the same model.  A failed fetch drops the asset's record:
the next call starts over from step 1.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

import structlog

from ai_testbed.interfaces.asset_backend import IAssetBackend
from ai_testbed.models.asset import AssetRecord, AssetState, is_listed
from ai_testbed.models.service import RunningInstance
from ai_testbed.providers.assets.local_cache import has_cached_files
from ai_testbed.utils.concurrency import KeyedLocks, timed
from ai_testbed.utils.errors import ProvisioningError

logger = structlog.get_logger(logger_name=__name__)

CachePathResolver = Callable[[str], Path]


class AssetProvisioner:
    """Ensures named assets are present in running instances."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], AssetRecord] = {}
        self._locks = KeyedLocks()

    def record(self, instance: RunningInstance, asset_id: str) -> AssetRecord | None:
        """Last known record for *asset_id* in *instance*, if any."""
        return self._records.get((instance.container_id, asset_id))

    def ensure_present(
        self,
        instance: RunningInstance,
        asset_id: str,
        backend: IAssetBackend,
        cache_path: Path | None = None,
    ) -> AssetRecord:
        """Make *asset_id* available in *instance*, fetching it only if absent.

        Raises
        ------
        ProvisioningError
            If the asset is unsupported, or listing or fetching fails.
        """
        key = (instance.container_id, asset_id)
        log = logger.bind(label=instance.label, asset=asset_id, backend=backend.get_backend_name())

        with self._locks.hold(key):
            cached = cache_path is not None and has_cached_files(cache_path)
            if cached:
                log.debug("asset_found_in_local_cache", path=str(cache_path))

            if not backend.is_supported(instance, asset_id):
                raise ProvisioningError(
                    message=f"Model '{asset_id}' is not supported by the service's model registry",
                    provider_name=instance.label,
                )

            listed = backend.list_assets(instance)
            record = self._records.get(key)
            if record is None or record.state is AssetState.PRESENT and not is_listed(asset_id, listed):
                if record is not None:
                    log.warning("asset_no_longer_listed")
                record = AssetRecord(container_id=instance.container_id, asset_id=asset_id, cached_locally=cached)

            if is_listed(asset_id, listed):
                log.info("asset_already_present")
                record = record.advance(AssetState.PRESENT)
                self._records[key] = record
                return record

            if cached:
                log.info("asset_cached_but_not_loaded")
            self._records[key] = record.advance(AssetState.DOWNLOADING)
            try:
                with timed("asset_fetch", log):
                    backend.fetch(instance, asset_id)
            except Exception:
                self._records.pop(key, None)
                raise

            record = self._records[key].advance(AssetState.PRESENT)
            self._records[key] = record
            return record

    def ensure_all(
        self,
        instance: RunningInstance,
        asset_ids: Iterable[str],
        backend: IAssetBackend,
        cache_path_for: CachePathResolver | None = None,
    ) -> list[AssetRecord]:
        """``ensure_present`` for each asset, in order; stops at the first failure."""
        return [
            self.ensure_present(
                instance,
                asset_id,
                backend,
                cache_path=cache_path_for(asset_id) if cache_path_for else None,
            )
            for asset_id in asset_ids
        ]
