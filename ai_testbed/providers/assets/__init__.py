"""Asset backends (IAssetBackend implementations) and listing/caching helpers."""

from ai_testbed.providers.assets.http_model_backend import HttpModelBackend
from ai_testbed.providers.assets.listing_decoders import (
    DEFAULT_DECODERS,
    Declined,
    decode_listing,
)
from ai_testbed.providers.assets.local_cache import (
    has_cached_files,
    huggingface_cache_dir,
    ollama_manifest_file,
)
from ai_testbed.providers.assets.ollama_cli_backend import OllamaCliBackend

__all__ = [
    "DEFAULT_DECODERS",
    "Declined",
    "HttpModelBackend",
    "OllamaCliBackend",
    "decode_listing",
    "has_cached_files",
    "huggingface_cache_dir",
    "ollama_manifest_file",
]
