"""Testbed settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. Environment variables, e.g. ``TESTBED_STARTUP_TIMEOUT_SECONDS=300``
  2. A ``.env`` file in the working directory

Field ``startup_timeout_seconds`` maps to ``TESTBED_STARTUP_TIMEOUT_SECONDS``.
``docker_host`` is read without the prefix so the usual ``DOCKER_HOST``
variable of the docker CLI is honoured as well.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ai-testbed settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="TESTBED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Container runtime ===
    # Empty string = use docker.from_env() defaults.
    docker_host: str = Field(
        default="",
        validation_alias=AliasChoices("TESTBED_DOCKER_HOST", "DOCKER_HOST", "docker_host"),
    )
    # Interface the fixed host ports are published on.
    bind_host: str = "127.0.0.1"
    # Disable when the daemon is remote and local port checks are meaningless.
    check_port_conflicts: bool = True
    # Leave containers running at interpreter exit so the next run adopts them.
    keep_containers: bool = False

    # === Model caches ===
    # Parent of the per-service cache dirs (ollama-tc, speeches-tc, ...).
    cache_root: Path = Path.home() / ".cache"

    # === Timeouts ===
    startup_timeout_seconds: float = 180.0
    probe_interval_seconds: float = 1.0
    connect_timeout_seconds: float = 10.0
    fetch_timeout_seconds: float = 600.0

    # === Override file ===
    config_path: str = "config/testbed.yaml"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
