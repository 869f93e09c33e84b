"""Host-side model cache layouts.

Services mount a host directory as their model cache, so a model downloaded
in an earlier run is already on disk.  These helpers map an asset id to the
directory where its files would live.  The result is only a hint: the
service's own listing decides whether a fetch happens.
"""

from __future__ import annotations

from pathlib import Path

from ai_testbed.models.asset import split_tag


def huggingface_cache_dir(hub_root: Path, asset_id: str) -> Path:
    """``Systran/faster-whisper-base`` -> ``<hub>/models--Systran--faster-whisper-base``."""
    return hub_root / f"models--{asset_id.replace('/', '--')}"


def ollama_manifest_dir(ollama_root: Path, asset_id: str) -> Path:
    """Manifest directory of an Ollama model inside ``~/.ollama``.

    ``all-minilm:l6-v2`` -> ``<root>/models/manifests/registry.ollama.ai/library/all-minilm``;
    namespaced names (``user/model``) drop the ``library`` segment.
    """
    name, _ = split_tag(asset_id)
    parts = name.split("/") if "/" in name else ["library", name]
    return ollama_root.joinpath("models", "manifests", "registry.ollama.ai", *parts)


def ollama_manifest_file(ollama_root: Path, asset_id: str) -> Path:
    _, tag = split_tag(asset_id)
    return ollama_manifest_dir(ollama_root, asset_id) / (tag or "latest")


def has_cached_files(path: Path) -> bool:
    """True if *path* is a non-empty directory or an existing file."""
    try:
        if path.is_file():
            return True
        return path.is_dir() and any(path.iterdir())
    except OSError:
        return False
