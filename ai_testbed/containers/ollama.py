"""Ollama inference servers and the embedding models they serve.

Two images share one host model cache (``~/.cache/ollama-tc``), so a model
pulled by either is on disk for both.  Models are pulled only when the
container is first started by this process; a reused container is assumed
to have been provisioned by whoever started it.  Call
``LifecycleManager.ensure_asset`` to pull into a reused container.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from functools import partial
from pathlib import Path
from typing import ClassVar

from ai_testbed.containers.base import ModelRef, SharedContainer, model_name
from ai_testbed.models.connection import ConnectionParameters
from ai_testbed.models.service import (
    BindMount,
    PortBinding,
    ReadinessCheck,
    ReadinessKind,
    ServiceDescriptor,
)
from ai_testbed.providers.assets.local_cache import ollama_manifest_file
from ai_testbed.providers.assets.ollama_cli_backend import OllamaCliBackend
from ai_testbed.services.property_exporter import PropertySink

CONTAINER_PORT = 11434


class OllamaEmbeddingModel(Enum):
    """Embedding models used by the vector-store tests."""

    ALL_MINILM = ("all-minilm:l6-v2", 384)  # small and fast, for tests
    NOMIC_EMBED_TEXT = ("nomic-embed-text", 768)

    def __init__(self, model_name: str, dimension: int) -> None:
        self.model_name = model_name
        self.dimension = dimension


class OllamaContainer(SharedContainer):
    """Common recipe for both Ollama images."""

    image: ClassVar[str]
    host_port: ClassVar[int]
    default_model: ClassVar[OllamaEmbeddingModel] = OllamaEmbeddingModel.ALL_MINILM

    @property
    def cache_dir(self) -> Path:
        return self.settings.cache_root / "ollama-tc"

    def build_descriptor(self) -> ServiceDescriptor:
        return ServiceDescriptor(
            label=self.label,
            image=self.image,
            ports=(PortBinding(host_port=self.host_port, container_port=CONTAINER_PORT),),
            environment={"OLLAMA_HOST": f"0.0.0.0:{CONTAINER_PORT}"},
            mounts=(BindMount(host_path=self.cache_dir, container_path="/root/.ollama"),),
            readiness=(
                ReadinessCheck(kind=ReadinessKind.HTTP_HEALTH, path="/api/tags", timeout_seconds=180),
            ),
            exports={
                "ai.model.embedding": "ollama",
                "ai.ollama.embedding.options.model": "{model}",
                "ai.ollama.base-url": "http://{host}:{port}",
            },
        )

    def start_if_needed(
        self,
        sink: PropertySink | None = None,
        models: Sequence[ModelRef] = (),
    ) -> ConnectionParameters:
        """Start or reuse the server, pulling *models* on first start.

        The first model is exported as the embedding model; without any
        models ``default_model`` is used.
        """
        names = [model_name(m) for m in models] or [self.default_model.model_name]
        instance = self.manager.ensure(
            self.descriptor,
            assets=names,
            backend=OllamaCliBackend(self.manager.runtime),
            provision_on_first_start_only=True,
            cache_path_for=partial(ollama_manifest_file, self.cache_dir),
        )
        return self._export(instance, sink, extra={"model": names[0]})


class OllamaMiniContainer(OllamaContainer):
    label = "Ollama-mini"
    image = "alpine/ollama:0.12.10"
    host_port = 11434


class OllamaOfficialContainer(OllamaContainer):
    label = "Ollama-Official"
    image = "ollama/ollama:0.13.5"
    host_port = 11435
