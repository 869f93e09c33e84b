"""Multilingual sentence-transformers embedding server (transformers-inference).

The image ships with paraphrase-multilingual-MiniLM-L12-v2 preloaded.  Extra
models are loaded best effort: some image versions do not implement
``/v1/models`` and load models on first use of ``/vectors`` instead, so a
failed load is logged and ignored.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import partial
from pathlib import Path

import structlog

from ai_testbed.containers.base import ModelRef, SharedContainer, model_name
from ai_testbed.models.connection import ConnectionParameters
from ai_testbed.models.service import BindMount, PortBinding, ReadinessCheck, ServiceDescriptor
from ai_testbed.providers.assets.http_model_backend import HttpModelBackend
from ai_testbed.providers.assets.local_cache import huggingface_cache_dir
from ai_testbed.services.property_exporter import PropertySink
from ai_testbed.utils.errors import ProvisioningError

logger = structlog.get_logger(logger_name=__name__)

IMAGE = (
    "semitechnologies/transformers-inference:"
    "sentence-transformers-paraphrase-multilingual-MiniLM-L12-v2-1.13.2"
)
HOST_PORT = 28002
CONTAINER_PORT = 8080


class SentenceTransformersContainer(SharedContainer):
    label = "SentenceTransformers"

    @property
    def hub_dir(self) -> Path:
        return self.settings.cache_root / "transformers-tc" / "huggingface" / "hub"

    def build_descriptor(self) -> ServiceDescriptor:
        # No health endpoint; wait for the port.
        return ServiceDescriptor(
            label=self.label,
            image=IMAGE,
            ports=(PortBinding(host_port=HOST_PORT, container_port=CONTAINER_PORT),),
            environment={
                "ENABLE_CUDA": "0",
                "HF_HOME": "/root/.cache/huggingface",
            },
            mounts=(BindMount(host_path=self.hub_dir, container_path="/root/.cache/huggingface/hub"),),
            readiness=(ReadinessCheck(timeout_seconds=300),),
            exports={"ai.sentence-transformers.base-url": "http://{host}:{port}"},
        )

    def start_if_needed(
        self,
        sink: PropertySink | None = None,
        models: Sequence[ModelRef] = (),
    ) -> ConnectionParameters:
        instance = self.manager.ensure(self.descriptor)
        backend = HttpModelBackend(self.settings)
        for model in models:
            asset_id = model_name(model)
            try:
                self.manager.ensure_asset(
                    instance,
                    asset_id,
                    backend,
                    cache_path_for=partial(huggingface_cache_dir, self.hub_dir),
                )
            except ProvisioningError as exc:
                logger.warning(
                    "model_load_skipped",
                    label=self.label,
                    asset=asset_id,
                    status=exc.status,
                    error=exc.message,
                )
        return self._export(instance, sink)
