"""Catalog of shared test containers.

``CATALOG`` maps the short names used on the command line to container
classes; each class also carries its service label (``Pg-vector``,
``Ollama-mini``, ...).
"""

from ai_testbed.containers.base import SharedContainer, model_name
from ai_testbed.containers.milvus import MilvusContainer
from ai_testbed.containers.ollama import (
    OllamaContainer,
    OllamaEmbeddingModel,
    OllamaMiniContainer,
    OllamaOfficialContainer,
)
from ai_testbed.containers.pgvector import PgVectorContainer
from ai_testbed.containers.sentence_transformers import SentenceTransformersContainer
from ai_testbed.containers.speeches import SpeechesContainer

CATALOG: dict[str, type[SharedContainer]] = {
    "pgvector": PgVectorContainer,
    "ollama-mini": OllamaMiniContainer,
    "ollama-official": OllamaOfficialContainer,
    "speeches": SpeechesContainer,
    "sentence-transformers": SentenceTransformersContainer,
    "milvus": MilvusContainer,
}


def lookup(name: str) -> type[SharedContainer]:
    """Find a catalog entry by short name or by service label (case-insensitive)."""
    key = name.lower()
    if key in CATALOG:
        return CATALOG[key]
    for cls in CATALOG.values():
        if cls.label.lower() == key:
            return cls
    raise KeyError(name)


__all__ = [
    "CATALOG",
    "MilvusContainer",
    "OllamaContainer",
    "OllamaEmbeddingModel",
    "OllamaMiniContainer",
    "OllamaOfficialContainer",
    "PgVectorContainer",
    "SentenceTransformersContainer",
    "SharedContainer",
    "SpeechesContainer",
    "lookup",
    "model_name",
]
