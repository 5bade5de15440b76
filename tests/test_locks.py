import threading
from pathlib import Path

import pytest

from commerce.core.locks import acquire_lock, lock_key_store
from commerce.utils.exceptions import LockTimeoutError


def test_lock_key_uses_resolved_path(tmp_path: Path):
    assert lock_key_store(tmp_path / "a" / ".." / "orders.json") == lock_key_store(tmp_path / "orders.json")
    assert lock_key_store(tmp_path / "orders.json").startswith("lock:store:")


def test_lock_is_reentrant_for_owner():
    with acquire_lock("lock:test:reentrant", timeout_seconds=0.5):
        with acquire_lock("lock:test:reentrant", timeout_seconds=0.5):
            pass


def test_lock_times_out_when_held_by_other_thread():
    held = threading.Event()
    release = threading.Event()

    def holder():
        with acquire_lock("lock:test:busy"):
            held.set()
            release.wait(5)

    t = threading.Thread(target=holder)
    t.start()
    held.wait(5)
    try:
        with pytest.raises(LockTimeoutError) as exc_info:
            with acquire_lock("lock:test:busy", timeout_seconds=0.1):
                pass
        assert exc_info.value.code == "STORE_BUSY"
        assert exc_info.value.status_code == 503
    finally:
        release.set()
        t.join()

    with acquire_lock("lock:test:busy", timeout_seconds=1):
        pass


def test_lock_released_when_block_raises():
    with pytest.raises(ValueError):
        with acquire_lock("lock:test:raises"):
            raise ValueError("boom")

    acquired = []

    def other():
        with acquire_lock("lock:test:raises", timeout_seconds=0.5):
            acquired.append(True)

    t = threading.Thread(target=other)
    t.start()
    t.join()
    assert acquired == [True]
