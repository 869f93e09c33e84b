# =============================================================================
# ai_testbed/cli/testbed.py: Command-line front end for the shared containers
# =============================================================================
#
# Start a catalog service by hand once, then run the test suite as often as
# needed: every test process adopts the running container through its
# ai-testbed.label docker label instead of starting its own.
#
#   python -m ai_testbed.cli start pgvector
#   python -m ai_testbed.cli start ollama-mini --model nomic-embed-text
#   python -m ai_testbed.cli start speeches --model Systran/faster-whisper-base
#   python -m ai_testbed.cli status
#   python -m ai_testbed.cli chat --model llama3.1
#
# Containers started with `start` are kept when the command exits.
# =============================================================================

"""Command-line tool to start, inspect and chat with the shared test containers."""

from __future__ import annotations

import argparse
import asyncio
import sys
import threading
from collections.abc import Callable

from ai_testbed.config.settings import Settings
from ai_testbed.containers import CATALOG, OllamaMiniContainer, SpeechesContainer, lookup
from ai_testbed.interfaces.chat_provider import IChatProvider
from ai_testbed.providers.llm.ollama_provider import DEFAULT_CHAT_MODEL, OllamaChatProvider
from ai_testbed.providers.runtime.docker_runtime import DockerContainerRuntime
from ai_testbed.utils.errors import TestbedError
from ai_testbed.utils.logging import configure_logging, get_logger

_EXIT_COMMANDS = {"quit", "exit", "q"}


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _wait_forever() -> None:
    """Block until Ctrl+C."""
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        print()


def _handle_start(args: argparse.Namespace, app_settings: Settings) -> int:
    try:
        container_cls = lookup(args.service)
    except KeyError:
        print(f"Error: unknown service {args.service!r}. Choose from: {', '.join(CATALOG)}", file=sys.stderr)
        return 2

    settings = app_settings.model_copy(update={"keep_containers": True})
    container = container_cls(settings=settings)

    options = {}
    if args.api_key:
        if not isinstance(container, SpeechesContainer):
            print("Error: --api-key only applies to speeches", file=sys.stderr)
            return 2
        options["api_key"] = args.api_key

    print(f"Starting {container.label} ...")
    params = container.start_if_needed(models=args.model or (), **options)

    instance = container.get_running()
    if instance is not None:
        ports = ", ".join(f"{hp}->{cp}" for cp, hp in instance.ports.items())
        state = "adopted" if instance.adopted else "started"
        print(f"{container.label} {state} on {instance.host} ({ports})")
    print()
    for key, value in params.values.items():
        print(f"  {key}={value}")
    print()
    print("Press Ctrl+C to exit; the container keeps running.")
    _wait_forever()
    return 0


def _handle_status(app_settings: Settings) -> int:
    runtime = DockerContainerRuntime(app_settings)
    print(f"{'SERVICE':<24}{'LABEL':<24}{'STATUS':<10}PORTS")
    for name, container_cls in CATALOG.items():
        instance = runtime.find_running(container_cls.label)
        if instance is None:
            print(f"{name:<24}{container_cls.label:<24}{'stopped':<10}-")
            continue
        ports = ", ".join(f"{instance.host}:{hp}->{cp}" for cp, hp in instance.ports.items())
        print(f"{name:<24}{container_cls.label:<24}{'running':<10}{ports}")
    return 0


async def _chat_loop(
    provider: IChatProvider,
    read_line: Callable[[str], str] = input,
) -> int:
    """Read prompts until an exit command, keeping the conversation history."""
    history: list[dict[str, str]] = []
    while True:
        try:
            user_input = (await asyncio.to_thread(read_line, "You: ")).strip()
        except EOFError:
            print()
            return 0
        if not user_input:
            continue
        if user_input.lower() in _EXIT_COMMANDS:
            print("\nBye!")
            return 0
        if user_input.lower() == "clear":
            history.clear()
            print("Conversation history cleared.\n")
            continue

        messages = [*history, {"role": "user", "content": user_input}]
        try:
            reply = await provider.chat(messages)
        except TestbedError as exc:
            print(f"Error: {exc}\n")
            continue
        print(f"AI: {reply}\n")
        history.extend([{"role": "user", "content": user_input}, {"role": "assistant", "content": reply}])


def _handle_chat(args: argparse.Namespace, app_settings: Settings) -> int:
    model = args.model or DEFAULT_CHAT_MODEL
    print("=" * 60)
    print("Interactive chat on the Ollama test container")
    print("=" * 60)
    print(f"Model: {model}")
    print("Type 'quit' or 'exit' to leave, 'clear' to reset the history.")
    print("=" * 60)
    print()

    print("Starting Ollama container ...")
    params = OllamaMiniContainer(settings=app_settings).start_if_needed(models=[model])
    base_url = str(params["ai.ollama.base-url"])
    print(f"Ollama is up at {base_url}\n")

    return asyncio.run(_chat_loop(OllamaChatProvider(base_url, model=model)))


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m ai_testbed.cli",
        description="Start and inspect the shared AI test containers.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Testbed commands")

    # -- start --
    start_parser = subparsers.add_parser("start", help="Start (or adopt) a service and keep it running")
    start_parser.add_argument("service", help=f"One of: {', '.join(CATALOG)}")
    start_parser.add_argument(
        "--model",
        action="append",
        help="Model to provision (repeatable)",
    )
    start_parser.add_argument("--api-key", dest="api_key", help="API key to export (speeches only)")

    # -- status --
    subparsers.add_parser("status", help="Show which catalog services are running")

    # -- chat --
    chat_parser = subparsers.add_parser("chat", help="Chat with a model on the Ollama-mini container")
    chat_parser.add_argument("--model", help=f"Chat model (default: {DEFAULT_CHAT_MODEL})")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse the subcommand and dispatch; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level)
    get_logger(__name__).debug("cli_command", command=args.command)

    try:
        if args.command == "start":
            return _handle_start(args, app_settings)
        if args.command == "status":
            return _handle_status(app_settings)
        return _handle_chat(args, app_settings)
    except TestbedError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
