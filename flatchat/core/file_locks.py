"""
Advisory file locks with a bounded wait.

Shared locks for readers, exclusive locks for writers. Acquisition never
blocks indefinitely: a non-blocking attempt is retried until the timeout
elapses, after which the caller gets STORE_UNAVAILABLE.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import IO, Iterator, Optional

import portalocker

from flatchat.core.config import LOCK_RETRY_INTERVAL_SECONDS, LOCK_TIMEOUT_SECONDS
from flatchat.core.errors import ChatError, ChatRefusal

SHARED = portalocker.LockFlags.SHARED
EXCLUSIVE = portalocker.LockFlags.EXCLUSIVE


def acquire(fh: IO, flags: portalocker.LockFlags, timeout: Optional[float] = None) -> None:
    """Lock an open file handle, retrying until `timeout` seconds have passed."""
    timeout = LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    deadline = time.monotonic() + timeout
    while True:
        try:
            portalocker.lock(fh, flags | portalocker.LockFlags.NON_BLOCKING)
            return
        except portalocker.exceptions.LockException as exc:
            if time.monotonic() >= deadline:
                raise ChatError(
                    ChatRefusal.STORE_UNAVAILABLE,
                    f"Timed out after {timeout:.1f}s waiting for lock on {getattr(fh, 'name', fh)}",
                ) from exc
        time.sleep(LOCK_RETRY_INTERVAL_SECONDS)


@contextmanager
def locked(fh: IO, flags: portalocker.LockFlags, timeout: Optional[float] = None) -> Iterator[IO]:
    """Hold a lock on `fh` for the duration of the block."""
    acquire(fh, flags, timeout)
    try:
        yield fh
    finally:
        portalocker.unlock(fh)
