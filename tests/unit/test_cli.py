"""Unit tests for the ai-testbed command-line tool."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ai_testbed.cli.testbed import _build_parser, _chat_loop, main
from ai_testbed.models.connection import ConnectionParameters
from ai_testbed.models.service import RunningInstance
from ai_testbed.utils.errors import RuntimeUnavailableError, TestbedError


@pytest.fixture(autouse=True)
def quiet_logging() -> Iterator[None]:
    with (
        patch("ai_testbed.cli.testbed.configure_logging"),
        patch("ai_testbed.cli.testbed.get_logger"),
    ):
        yield


def _lines(*inputs: str):
    """``input`` replacement yielding *inputs* then raising EOFError."""
    it = iter(inputs)

    def read_line(prompt: str) -> str:
        try:
            return next(it)
        except StopIteration:
            raise EOFError from None

    return read_line


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_start_with_repeated_models(self) -> None:
        args = _build_parser().parse_args(
            ["start", "speeches", "--model", "Systran/faster-whisper-base", "--model", "speaches-ai/Kokoro-82M-v1.0-ONNX"]
        )
        assert args.command == "start"
        assert args.service == "speeches"
        assert args.model == ["Systran/faster-whisper-base", "speaches-ai/Kokoro-82M-v1.0-ONNX"]
        assert args.api_key is None

    def test_chat_model(self) -> None:
        args = _build_parser().parse_args(["chat", "--model", "qwen2.5"])
        assert args.model == "qwen2.5"

    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out


# ======================================================================
# start
# ======================================================================


class TestStartCommand:
    def test_unknown_service(self, capsys) -> None:
        assert main(["start", "redis"]) == 2
        assert "unknown service 'redis'" in capsys.readouterr().err

    def test_api_key_only_for_speeches(self, capsys) -> None:
        assert main(["start", "pgvector", "--api-key", "secret"]) == 2
        assert "--api-key only applies to speeches" in capsys.readouterr().err

    def test_prints_properties_and_keeps_container(self, capsys) -> None:
        container = MagicMock()
        container.label = "Pg-vector"
        container.start_if_needed.return_value = ConnectionParameters(
            label="Pg-vector",
            values={"datasource.postgres.url": "postgresql://127.0.0.1:25433/test"},
        )
        container.get_running.return_value = RunningInstance(
            label="Pg-vector", container_id="c", host="127.0.0.1", ports={5432: 25433}
        )
        container_cls = MagicMock(return_value=container)

        with (
            patch("ai_testbed.cli.testbed.lookup", return_value=container_cls),
            patch("ai_testbed.cli.testbed._wait_forever") as wait,
        ):
            assert main(["start", "pgvector", "--model", "m1"]) == 0

        out = capsys.readouterr().out
        assert "Pg-vector started on 127.0.0.1 (25433->5432)" in out
        assert "datasource.postgres.url=postgresql://127.0.0.1:25433/test" in out
        assert container_cls.call_args.kwargs["settings"].keep_containers is True
        container.start_if_needed.assert_called_once_with(models=["m1"])
        wait.assert_called_once()

    def test_testbed_error_exits_with_1(self, capsys) -> None:
        container = MagicMock()
        container.start_if_needed.side_effect = TestbedError("did not become ready", provider_name="Pg-vector")

        with patch("ai_testbed.cli.testbed.lookup", return_value=MagicMock(return_value=container)):
            assert main(["start", "pgvector"]) == 1
        assert "[Pg-vector] did not become ready" in capsys.readouterr().err


# ======================================================================
# status
# ======================================================================


class TestStatusCommand:
    def test_table(self, capsys) -> None:
        runtime = MagicMock()
        runtime.find_running.side_effect = lambda label: (
            RunningInstance(label=label, container_id="c", host="127.0.0.1", ports={5432: 25433}, adopted=True)
            if label == "Pg-vector"
            else None
        )
        with patch("ai_testbed.cli.testbed.DockerContainerRuntime", return_value=runtime):
            assert main(["status"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("SERVICE")
        pg_line = next(line for line in lines if line.startswith("pgvector"))
        assert "running" in pg_line and "127.0.0.1:25433->5432" in pg_line
        milvus_line = next(line for line in lines if line.startswith("milvus"))
        assert "stopped" in milvus_line

    def test_docker_unavailable(self, capsys) -> None:
        with patch(
            "ai_testbed.cli.testbed.DockerContainerRuntime",
            side_effect=RuntimeUnavailableError("Docker is not running", provider_name="docker"),
        ):
            assert main(["status"]) == 1
        assert "Docker is not running" in capsys.readouterr().err


# ======================================================================
# chat loop
# ======================================================================


class TestChatLoop:
    @pytest.mark.asyncio
    async def test_keeps_history_and_clears(self, capsys) -> None:
        provider = MagicMock()
        provider.chat = AsyncMock(side_effect=["Hi there", "Fresh start"])

        code = await _chat_loop(provider, read_line=_lines("hello", "", "clear", "again", "quit"))

        assert code == 0
        assert provider.chat.await_count == 2
        first_messages = provider.chat.await_args_list[0].args[0]
        second_messages = provider.chat.await_args_list[1].args[0]
        assert first_messages == [{"role": "user", "content": "hello"}]
        assert second_messages == [{"role": "user", "content": "again"}]
        out = capsys.readouterr().out
        assert "AI: Hi there" in out
        assert "Conversation history cleared." in out
        assert "Bye!" in out

    @pytest.mark.asyncio
    async def test_history_accumulates(self) -> None:
        provider = MagicMock()
        provider.chat = AsyncMock(side_effect=["one", "two"])

        await _chat_loop(provider, read_line=_lines("a", "b", "exit"))

        assert provider.chat.await_args_list[1].args[0] == [
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "one"},
            {"role": "user", "content": "b"},
        ]

    @pytest.mark.asyncio
    async def test_error_keeps_session_alive(self, capsys) -> None:
        provider = MagicMock()
        provider.chat = AsyncMock(side_effect=[TestbedError("Ollama API error", provider_name="ollama"), "ok"])

        code = await _chat_loop(provider, read_line=_lines("a", "b", "q"))

        assert code == 0
        assert provider.chat.await_args_list[1].args[0] == [{"role": "user", "content": "b"}]
        assert "Error: [ollama] Ollama API error" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_eof_ends_session(self) -> None:
        provider = MagicMock()
        provider.chat = AsyncMock()

        assert await _chat_loop(provider, read_line=_lines()) == 0
        provider.chat.assert_not_awaited()
