"""Utility modules for ai-testbed.

- **errors** -- exception hierarchy rooted at TestbedError; each lifecycle
  stage raises its own subclass so tests can tell a timeout from a failed
  model pull without parsing messages.
- **concurrency** -- keyed lock table and the ``timed`` logging helper.
- **logging** -- structlog setup with console/JSON dual rendering.
"""

from ai_testbed.utils.concurrency import KeyedLocks, timed
from ai_testbed.utils.errors import (
    ConfigurationError,
    InitializationFailure,
    PortConflict,
    ProvisioningError,
    RuntimeUnavailableError,
    StartupTimeout,
    TestbedError,
)
from ai_testbed.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "InitializationFailure",
    "KeyedLocks",
    "PortConflict",
    "ProvisioningError",
    "RuntimeUnavailableError",
    "StartupTimeout",
    "TestbedError",
    "configure_logging",
    "get_logger",
    "timed",
]
