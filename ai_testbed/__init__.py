"""ai-testbed: shared, reusable docker services for AI integration tests.

One registry per process starts each backing service (pgvector, Ollama,
speaches, sentence-transformers, Milvus) at most once, provisions the models
tests need, and exports connection properties for them.
"""

__version__ = "0.1.0"
