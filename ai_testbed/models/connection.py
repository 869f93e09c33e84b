"""Connection parameters handed back to tests."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ConnectionParameters(BaseModel):
    """Named configuration values derived from a running instance.

    Recomputed on every export; never cached.  Values keep insertion order
    (the order of the descriptor's ``exports``) so two exports of the same
    instance compare and serialize identically.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    values: dict[str, str | int] = Field(default_factory=dict)

    def __getitem__(self, key: str) -> str | int:
        return self.values[key]

    def get(self, key: str, default: str | int | None = None) -> str | int | None:
        return self.values.get(key, default)

    def as_env(self) -> dict[str, str]:
        """Render keys as environment variable names.

        ``ai.ollama.base-url`` becomes ``AI_OLLAMA_BASE_URL``.
        """
        return {env_key(k): str(v) for k, v in self.values.items()}


def env_key(key: str) -> str:
    return key.replace(".", "_").replace("-", "_").upper()
