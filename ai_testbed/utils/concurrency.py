"""Shared locking primitives for the lifecycle manager.

Test threads call into the registry and the asset provisioner
independently, with no event loop in between.  Both need "one caller at a
time per key" semantics while letting unrelated keys proceed in parallel:

1. **KeyedLocks** -- a lazily populated lock table.  The registry keys it by
   service label (no duplicate start per label); the provisioner keys it by
   ``(container id, asset id)`` (no duplicate fetch per asset).

2. **timed** -- a context manager that measures a blocking section and logs
   its duration, used around pulls and container starts.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from typing import Any

import structlog

_logger = structlog.get_logger(logger_name=__name__)


class KeyedLocks:
    """A table of ``threading.Lock`` objects created on first access.

    The table itself is guarded by a small internal lock that is held only
    while looking up or inserting an entry, never while the per-key lock is
    held by a caller.
    """

    def __init__(self) -> None:
        self._table_lock = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def lock_for(self, key: Hashable) -> threading.Lock:
        """Return the lock for *key*, creating it if needed."""
        with self._table_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for *key* for the duration of the ``with`` block."""
        with self.lock_for(key):
            yield

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._locks)


@contextmanager
def timed(
    event: str,
    logger: structlog.BoundLogger | None = None,
    **context: Any,
) -> Iterator[None]:
    """Log ``<event>_started`` / ``<event>_finished`` around a block.

    The finished event carries ``elapsed_ms``.  Nothing is logged as
    finished when the block raises; the exception propagates unchanged.
    """
    if logger is None:
        logger = _logger
    logger.info(f"{event}_started", **context)
    started = time.monotonic()
    yield
    elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.info(f"{event}_finished", elapsed_ms=elapsed_ms, **context)
