"""
Per-store write locks to prevent lost updates.

Keys: lock:store:{absolute path}. One lock per collection file per process;
two FileStore instances on the same file share it. There is no
cross-process coordination.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator

from ..utils.exceptions import LockTimeoutError

LOCK_TIMEOUT_SECONDS = 10.0

_registry: Dict[str, threading.RLock] = {}
_registry_guard = threading.Lock()


def _lock_for(key: str) -> threading.RLock:
    with _registry_guard:
        lock = _registry.get(key)
        if lock is None:
            lock = threading.RLock()
            _registry[key] = lock
        return lock


@contextmanager
def acquire_lock(key: str, timeout_seconds: float = LOCK_TIMEOUT_SECONDS) -> Generator[None, None, None]:
    """
    Acquire a named lock (e.g. lock:store:/srv/data/orders.json).
    Re-entrant for the owning thread; blocks until acquired or timeout.
    """
    lock = _lock_for(key)
    start = time.monotonic()
    if not lock.acquire(timeout=timeout_seconds):
        waited = time.monotonic() - start
        raise LockTimeoutError(f"Could not acquire lock {key} within {waited:.1f}s")
    try:
        yield
    finally:
        lock.release()


def lock_key_store(path: Path) -> str:
    return f"lock:store:{Path(path).resolve()}"
