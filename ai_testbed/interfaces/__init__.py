"""Public interface definitions for everything the testbed talks to.

Each external system is reached only through one of these ABCs; concrete
adapters live in ``ai_testbed/providers/`` and are injected by the
lifecycle manager (or by tests, which inject fakes).

    Interface          ->  Concrete implementations
    ---------------------------------------------------------------
    IContainerRuntime  ->  DockerContainerRuntime
    IReadinessProbe    ->  PortListeningProbe, HttpHealthProbe
    IAssetBackend      ->  OllamaCliBackend, HttpModelBackend
    IChatProvider      ->  OllamaChatProvider
"""

from ai_testbed.interfaces.asset_backend import IAssetBackend
from ai_testbed.interfaces.chat_provider import IChatProvider
from ai_testbed.interfaces.container_runtime import LABEL_KEY, ExecResult, IContainerRuntime
from ai_testbed.interfaces.readiness_probe import IReadinessProbe

__all__ = [
    "LABEL_KEY",
    "ExecResult",
    "IAssetBackend",
    "IChatProvider",
    "IContainerRuntime",
    "IReadinessProbe",
]
