"""Decoders for model-listing responses.

Model servers answer "which models do you have?" in different shapes:

    Ollama HTTP      {"models": [{"name": "all-minilm:l6-v2", ...}]}
    OpenAI-style     {"object": "list", "data": [{"id": "Systran/faster-whisper-base"}]}
    bare JSON list   ["a", "b"]  or  [{"id": "a"}, {"name": "b"}]
    Ollama CLI       NAME               ID      SIZE   MODIFIED
                     all-minilm:l6-v2   1b22..  45 MB  2 days ago

Each decoder either returns the set of model names or raises
:class:`Declined` with a reason.  :func:`decode_listing` tries them in order
and stops at the first success; when every decoder declines it raises a
:class:`ProvisioningError` listing all reasons.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Sequence
from typing import Any

from ai_testbed.utils.errors import ProvisioningError

_WHITESPACE = re.compile(r"\s+")


class Declined(Exception):
    """A decoder does not recognise the response shape."""


ListingDecoder = Callable[[str], frozenset[str]]


def _load_json(body: str) -> Any:
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise Declined(f"not JSON ({exc.msg})") from exc


def _names_from_entries(entries: list[Any], keys: Sequence[str]) -> frozenset[str]:
    names: set[str] = set()
    for entry in entries:
        if isinstance(entry, str):
            names.add(entry)
            continue
        if not isinstance(entry, dict):
            raise Declined(f"unexpected entry type {type(entry).__name__}")
        for key in keys:
            value = entry.get(key)
            if isinstance(value, str) and value:
                names.add(value)
                break
        else:
            raise Declined(f"entry without any of {', '.join(keys)}")
    return frozenset(names)


def decode_ollama_tags(body: str) -> frozenset[str]:
    """``GET /api/tags`` of an Ollama server."""
    payload = _load_json(body)
    if not isinstance(payload, dict) or not isinstance(payload.get("models"), list):
        raise Declined("no 'models' list")
    names = set(_names_from_entries(payload["models"], ("name", "model")))
    # /api/tags also reports "model"; keep both spellings when they differ.
    for entry in payload["models"]:
        if isinstance(entry, dict) and isinstance(entry.get("model"), str):
            names.add(entry["model"])
    return frozenset(names)


def decode_openai_models(body: str) -> frozenset[str]:
    """OpenAI-compatible ``GET /v1/models`` (speaches, transformers-inference)."""
    payload = _load_json(body)
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise Declined("no 'data' list")
    return _names_from_entries(payload["data"], ("id", "name", "model"))


def decode_json_list(body: str) -> frozenset[str]:
    """A bare JSON array of names or of objects carrying ``id``/``name``."""
    payload = _load_json(body)
    if not isinstance(payload, list):
        raise Declined("not a JSON array")
    return _names_from_entries(payload, ("id", "name", "model"))


def decode_cli_table(body: str) -> frozenset[str]:
    """Whitespace-aligned CLI table; the name is the first column.

    A leading ``NAME ...`` header row is skipped.  Empty output means no
    models.
    """
    stripped = body.strip()
    if stripped.startswith(("{", "[")):
        raise Declined("looks like JSON, not a CLI table")
    lines = [line.strip() for line in stripped.splitlines() if line.strip()]
    if lines and lines[0].split()[0].upper() == "NAME":
        lines = lines[1:]
    return frozenset(_WHITESPACE.split(line, maxsplit=1)[0] for line in lines)


DEFAULT_DECODERS: tuple[ListingDecoder, ...] = (
    decode_ollama_tags,
    decode_openai_models,
    decode_json_list,
    decode_cli_table,
)


def decode_listing(
    body: str,
    decoders: Sequence[ListingDecoder] = DEFAULT_DECODERS,
    source: str | None = None,
) -> frozenset[str]:
    """Return the model names in *body* using the first decoder that accepts it."""
    reasons: list[str] = []
    for decoder in decoders:
        try:
            return decoder(body)
        except Declined as exc:
            reasons.append(f"{decoder.__name__}: {exc}")
    raise ProvisioningError(
        message="Cannot decode model listing (" + "; ".join(reasons) + ")",
        provider_name=source,
        payload=body[:2000],
    )
