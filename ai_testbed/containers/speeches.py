"""speaches: OpenAI-compatible speech-to-text and text-to-speech server.

STT runs on faster-whisper (``Systran/faster-whisper-base`` and friends),
TTS on Kokoro or Piper (``speaches-ai/Kokoro-82M-v1.0-ONNX``).  Models are
downloaded through ``POST /v1/models/{id}`` into the mounted Hugging Face
cache, after checking ``/v1/registry`` that speaches can serve them.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import partial
from pathlib import Path

import structlog

from ai_testbed.containers.base import ModelRef, SharedContainer, model_name
from ai_testbed.models.connection import ConnectionParameters
from ai_testbed.models.service import (
    BindMount,
    PortBinding,
    ReadinessCheck,
    ReadinessKind,
    ServiceDescriptor,
)
from ai_testbed.providers.assets.http_model_backend import HttpModelBackend
from ai_testbed.providers.assets.local_cache import huggingface_cache_dir
from ai_testbed.services.property_exporter import PropertySink

logger = structlog.get_logger(logger_name=__name__)

IMAGE = "ghcr.io/speaches-ai/speaches:0.9.0-rc.3-cpu"
HOST_PORT = 28001
CONTAINER_PORT = 8000


class SpeechesContainer(SharedContainer):
    label = "Speeches"

    @property
    def hub_dir(self) -> Path:
        return self.settings.cache_root / "speaches-tc" / "huggingface" / "hub"

    def build_descriptor(self) -> ServiceDescriptor:
        return ServiceDescriptor(
            label=self.label,
            image=IMAGE,
            ports=(PortBinding(host_port=HOST_PORT, container_port=CONTAINER_PORT),),
            environment={
                "host": "0.0.0.0",
                "port": str(CONTAINER_PORT),
                # -1: never unload a model once loaded
                "stt_model_ttl": "-1",
                "tts_model_ttl": "-1",
                "vad_model_ttl": "-1",
                "log_level": "info",
                "enable_ui": "False",
            },
            mounts=(BindMount(host_path=self.hub_dir, container_path="/home/ubuntu/.cache/huggingface/hub"),),
            readiness=(ReadinessCheck(kind=ReadinessKind.HTTP_HEALTH, path="/health", timeout_seconds=300),),
            exports={
                "ai.speeches.base-url": "http://{host}:{port}",
                "ai.speeches.api-key": "{api_key}",
            },
        )

    def start_if_needed(
        self,
        sink: PropertySink | None = None,
        models: Sequence[ModelRef] = (),
        api_key: str | None = None,
    ) -> ConnectionParameters:
        """Start or reuse speaches and make sure each STT/TTS model is downloaded.

        *api_key* is exported and sent with model requests.  It does not
        configure the server: a container started without ``API_KEY`` in
        its environment accepts any key.
        """
        if api_key:
            logger.info("speeches_api_key_not_applied_to_container", label=self.label)
        backend = HttpModelBackend(
            self.settings,
            registry_path="/v1/registry",
            headers={"Authorization": f"Bearer {api_key}"} if api_key else None,
        )
        instance = self.manager.ensure(
            self.descriptor,
            assets=[model_name(m) for m in models],
            backend=backend,
            cache_path_for=partial(huggingface_cache_dir, self.hub_dir),
        )
        return self._export(instance, sink, extra={"api_key": api_key})
