"""Abstract base class for chat-completion providers.

Used by the interactive chat CLI to talk to a model served by one of the
test containers.  Messages use the OpenAI shape
``{"role": "user" | "assistant" | "system", "content": "..."}``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OllamaChatProvider (providers/llm/ollama_provider.py)
class IChatProvider(ABC):
    """Contract for multi-turn chat against a served model."""

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
    ) -> str:
        """Send the conversation and return the assistant's reply text.

        Raises
        ------
        ai_testbed.utils.errors.TestbedError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Return True if the model server is reachable."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
