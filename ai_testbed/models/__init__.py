"""ai-testbed data models.

- service.py    -- ServiceDescriptor and its parts, RunningInstance
- asset.py      -- AssetRecord / AssetState and tag-aware name matching
- connection.py -- ConnectionParameters produced by the property exporter

All models are frozen pydantic v2 models.
"""

from __future__ import annotations

from ai_testbed.models.asset import AssetRecord, AssetState, is_listed, split_tag
from ai_testbed.models.connection import ConnectionParameters, env_key
from ai_testbed.models.service import (
    BindMount,
    PortBinding,
    ReadinessCheck,
    ReadinessKind,
    RunningInstance,
    ServiceDescriptor,
    ServiceLabel,
)

__all__ = [
    "AssetRecord",
    "AssetState",
    "BindMount",
    "ConnectionParameters",
    "PortBinding",
    "ReadinessCheck",
    "ReadinessKind",
    "RunningInstance",
    "ServiceDescriptor",
    "ServiceLabel",
    "env_key",
    "is_listed",
    "split_tag",
]
