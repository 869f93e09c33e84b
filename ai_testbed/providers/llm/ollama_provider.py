"""Ollama chat provider adapter.

Talks to an Ollama server (normally the Ollama-mini test container) through
its OpenAI-compatible ``/v1`` endpoint, using the ``openai`` client library.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from ai_testbed.interfaces.chat_provider import IChatProvider
from ai_testbed.utils.errors import TestbedError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHAT_MODEL = "llama3.1"


class OllamaChatProvider(IChatProvider):
    """Multi-turn chat against a model served by Ollama."""

    def __init__(
        self,
        base_url: str,
        model: str = DEFAULT_CHAT_MODEL,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._client = client or openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # Ollama ignores the key, but the SDK requires a non-empty one.
            api_key="ollama",
        )

    @property
    def model(self) -> str:
        return self._model

    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
            )
        except openai.APIError as exc:
            raise TestbedError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise TestbedError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.debug("ollama_chat_completion", model=self._model, turns=len(messages))
        return content

    async def validate_connection(self) -> bool:
        """Hit Ollama's native ``/api/tags`` to check the server is up."""
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"
