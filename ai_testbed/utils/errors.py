"""Custom exception hierarchy for ai-testbed.

All testbed exceptions inherit from :class:`TestbedError`, which carries an
optional ``provider_name`` so callers can tell which backing service or
backend (e.g. "Pg-vector", "ollama-cli", "docker") caused the failure.

The hierarchy follows the lifecycle of a shared test resource:

    TestbedError  (base -- catch-all for any testbed error)
    +-- PortConflict             (fixed host port already taken)
    +-- StartupTimeout           (readiness probe never succeeded)
    +-- InitializationFailure    (one-time post-start hook failed)
    +-- ProvisioningError        (model listing or fetch failed)
    +-- RuntimeUnavailableError  (docker daemon unreachable)
    +-- ConfigurationError       (invalid descriptor / override file)

None of these are retried inside the testbed.  They surface synchronously to
the calling test, which either fails or (for RuntimeUnavailableError) skips.
"""

from __future__ import annotations


class TestbedError(Exception):
    """Base exception for all ai-testbed errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which service or backend triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[Ollama-mini] ollama pull failed``.
    """

    # Keep pytest from collecting this class as a test case.
    __test__ = False

    def __init__(
        self,
        message: str = "An unexpected testbed error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Start-up errors
# ---------------------------------------------------------------------------

class PortConflict(TestbedError):
    """Raised when a fixed host port is occupied by an unrelated process."""

    def __init__(
        self,
        message: str = "Fixed host port is already in use",
        provider_name: str | None = None,
        port: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.port = port


class StartupTimeout(TestbedError):
    """Raised when a service does not become ready within its startup window.

    Fatal to the calling test run; the start is not retried.
    """

    def __init__(
        self,
        message: str = "Service did not become ready in time",
        provider_name: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.timeout_seconds = timeout_seconds


class InitializationFailure(TestbedError):
    """Raised when the one-time post-start hook of a service fails.

    The instance stays registered as running: partial bring-up is not
    rolled back, so later callers reuse the half-initialized service.
    """

    def __init__(
        self,
        message: str = "Post-start initialization failed",
        provider_name: str | None = None,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


# ---------------------------------------------------------------------------
# Asset errors
# ---------------------------------------------------------------------------

class ProvisioningError(TestbedError):
    """Raised when listing or fetching a model inside a service fails.

    ``status`` holds the HTTP status code or the exit code of the CLI
    command; ``payload`` holds the response body or command output.  A
    failed fetch is not remembered, so the next call starts over.
    """

    def __init__(
        self,
        message: str = "Asset provisioning failed",
        provider_name: str | None = None,
        status: int | None = None,
        payload: str = "",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.status = status
        self.payload = payload


# ---------------------------------------------------------------------------
# Environment / configuration errors
# ---------------------------------------------------------------------------

class RuntimeUnavailableError(TestbedError):
    """Raised when the container runtime (docker daemon) cannot be reached.

    Test harnesses translate this into a skip rather than a failure.
    """

    def __init__(
        self,
        message: str = "Container runtime is not available",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(TestbedError):
    """Raised when a descriptor or the override file is invalid."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
