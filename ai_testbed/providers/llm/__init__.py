"""Chat providers (IChatProvider implementations)."""

from ai_testbed.providers.llm.ollama_provider import DEFAULT_CHAT_MODEL, OllamaChatProvider

__all__ = ["DEFAULT_CHAT_MODEL", "OllamaChatProvider"]
