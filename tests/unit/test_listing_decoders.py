"""Unit tests for model-listing decoders."""

from __future__ import annotations

import json

import pytest

from ai_testbed.providers.assets.listing_decoders import (
    Declined,
    decode_cli_table,
    decode_json_list,
    decode_listing,
    decode_ollama_tags,
    decode_openai_models,
)
from ai_testbed.utils.errors import ProvisioningError

OLLAMA_LIST_OUTPUT = """\
NAME                ID              SIZE      MODIFIED
all-minilm:l6-v2    1b226e2802db    45 MB     2 days ago
llama3.1:latest     46e0c10c039e    4.9 GB    3 weeks ago
"""


# ======================================================================
# Individual decoders
# ======================================================================


class TestOllamaTags:
    def test_names_and_models(self) -> None:
        body = json.dumps(
            {"models": [{"name": "all-minilm:l6-v2", "model": "all-minilm:l6-v2"}, {"name": "nomic-embed-text:latest"}]}
        )
        assert decode_ollama_tags(body) == {"all-minilm:l6-v2", "nomic-embed-text:latest"}

    def test_declines_other_shapes(self) -> None:
        with pytest.raises(Declined):
            decode_ollama_tags('{"data": []}')


class TestOpenAIModels:
    def test_ids(self) -> None:
        body = json.dumps({"object": "list", "data": [{"id": "Systran/faster-whisper-base", "object": "model"}]})
        assert decode_openai_models(body) == {"Systran/faster-whisper-base"}

    def test_declines_non_json(self) -> None:
        with pytest.raises(Declined, match="not JSON"):
            decode_openai_models("NAME ID")


class TestJsonList:
    def test_mixed_entries(self) -> None:
        assert decode_json_list('["a", {"id": "b"}, {"name": "c"}]') == {"a", "b", "c"}

    def test_entry_without_name(self) -> None:
        with pytest.raises(Declined, match="entry without"):
            decode_json_list('[{"size": 1}]')


class TestCliTable:
    def test_skips_header(self) -> None:
        assert decode_cli_table(OLLAMA_LIST_OUTPUT) == {"all-minilm:l6-v2", "llama3.1:latest"}

    def test_header_only(self) -> None:
        assert decode_cli_table("NAME    ID    SIZE    MODIFIED\n") == frozenset()

    def test_empty_output(self) -> None:
        assert decode_cli_table("") == frozenset()

    def test_declines_json(self) -> None:
        with pytest.raises(Declined):
            decode_cli_table('{"models": []}')


# ======================================================================
# decode_listing
# ======================================================================


class TestDecodeListing:
    def test_first_accepting_decoder_wins(self) -> None:
        assert decode_listing('{"models": [{"name": "m"}]}') == {"m"}
        assert decode_listing('{"data": [{"id": "org/model-a"}]}') == {"org/model-a"}
        assert decode_listing(OLLAMA_LIST_OUTPUT) == {"all-minilm:l6-v2", "llama3.1:latest"}

    def test_all_declined(self) -> None:
        with pytest.raises(ProvisioningError) as info:
            decode_listing('{"unexpected": 1}', source="Speeches")
        message = str(info.value)
        assert message.startswith("[Speeches] ")
        for name in ("decode_ollama_tags", "decode_openai_models", "decode_json_list", "decode_cli_table"):
            assert name in message
        assert info.value.payload == '{"unexpected": 1}'

    def test_custom_decoder_chain(self) -> None:
        with pytest.raises(ProvisioningError):
            decode_listing('["a"]', decoders=(decode_cli_table,))
