"""Structured logging setup using structlog.

Implements a **dual-renderer pattern**: one shared processor chain feeds
either a coloured ConsoleRenderer for local runs or a JSONRenderer for CI.
JSON is chosen when ``APP_ENV`` is ``production`` or ``ci``, or when
``json_output`` is set.

Log output goes to stderr by default: the CLI prints exported connection
properties on stdout and pytest captures the two streams separately.
Standard-library ``logging`` is routed through the same formatter, with the
chatty HTTP and docker clients capped at WARNING.
"""

import logging
import os
import sys
from typing import TextIO

import structlog

# Per-request debug output of these clients drowns the testbed's own events.
_NOISY_LOGGERS = ("docker", "urllib3", "httpx", "httpcore", "openai")


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output instead of deciding from APP_ENV.
        stream: Destination stream; defaults to ``sys.stderr``.

    Returns:
        A configured structlog BoundLogger.
    """
    stream = stream or sys.stderr
    level = logging.getLevelName(log_level.upper())
    use_json = json_output or os.environ.get("APP_ENV", "development") in ("production", "ci")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared_processors,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Named structlog logger; configures defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
