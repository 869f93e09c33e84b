"""Milvus standalone with embedded etcd and local storage.

The gRPC API listens on 19530; 9091 serves ``/healthz``.  Both must be up
before the service counts as ready.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from ai_testbed.containers.base import ModelRef, SharedContainer
from ai_testbed.models.connection import ConnectionParameters
from ai_testbed.models.service import (
    BindMount,
    PortBinding,
    ReadinessCheck,
    ReadinessKind,
    ServiceDescriptor,
)
from ai_testbed.services.property_exporter import PropertySink

IMAGE = "milvusdb/milvus:v2.5.4"
GRPC_PORT = 19530
HTTP_PORT = 9091

_ETCD_CONFIG_DIR = "/milvus/testbed"
EMBED_ETCD_CONFIG = """\
listen-client-urls: http://0.0.0.0:2379
advertise-client-urls: http://0.0.0.0:2379
quota-backend-bytes: 4294967296
auto-compaction-mode: revision
auto-compaction-retention: '1000'
"""


class MilvusContainer(SharedContainer):
    label = "Milvus"

    @property
    def config_dir(self) -> Path:
        return self.settings.cache_root / "milvus-tc"

    def build_descriptor(self) -> ServiceDescriptor:
        return ServiceDescriptor(
            label=self.label,
            image=IMAGE,
            command=("milvus", "run", "standalone"),
            ports=(
                PortBinding(host_port=GRPC_PORT, container_port=GRPC_PORT),
                PortBinding(host_port=HTTP_PORT, container_port=HTTP_PORT),
            ),
            environment={
                "ETCD_USE_EMBED": "true",
                "ETCD_DATA_DIR": "/var/lib/milvus/etcd",
                "ETCD_CONFIG_PATH": f"{_ETCD_CONFIG_DIR}/embedEtcd.yaml",
                "COMMON_STORAGETYPE": "local",
            },
            mounts=(BindMount(host_path=self.config_dir, container_path=_ETCD_CONFIG_DIR, read_only=True),),
            readiness=(
                ReadinessCheck(container_port=GRPC_PORT, timeout_seconds=300),
                ReadinessCheck(
                    kind=ReadinessKind.HTTP_HEALTH,
                    container_port=HTTP_PORT,
                    path="/healthz",
                    timeout_seconds=300,
                ),
            ),
            exports={
                "ai.vectorstore.milvus.host": "{host}",
                "ai.vectorstore.milvus.port": f"{{port_{GRPC_PORT}}}",
            },
        )

    def start_if_needed(
        self,
        sink: PropertySink | None = None,
        models: Sequence[ModelRef] = (),
    ) -> ConnectionParameters:
        self.write_etcd_config()
        return super().start_if_needed(sink)

    def write_etcd_config(self) -> Path:
        """Write the embedded etcd config into the mounted directory."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.config_dir / "embedEtcd.yaml"
        if not path.exists() or path.read_text() != EMBED_ETCD_CONFIG:
            path.write_text(EMBED_ETCD_CONFIG)
        return path
