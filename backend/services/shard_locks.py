"""Fixed-size table of mutexes selected by hashing a record identifier."""

from __future__ import annotations

import logging
import threading
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from backend.errors import LockAcquisitionTimeout


logger = logging.getLogger(__name__)


class ShardLockTable:
    """Serialize work per identifier without allocating one lock per identifier.

    Distinct identifiers that land on the same slot contend with each other;
    the same identifier always lands on the same slot.
    """

    def __init__(self, stripes: int = 2048, timeout_seconds: float | None = None) -> None:
        if stripes <= 0:
            raise ValueError("stripes must be a positive integer")
        self._locks = tuple(threading.Lock() for _ in range(stripes))
        self._timeout_seconds = timeout_seconds

    @property
    def stripes(self) -> int:
        return len(self._locks)

    def slot_for(self, key: UUID | str) -> int:
        """Return the slot index for a key; stable across processes."""

        return zlib.crc32(str(key).encode("utf-8")) % len(self._locks)

    def acquire(self, key: UUID | str) -> threading.Lock:
        """Block until the key's lock is held and return it as the release guard."""

        lock = self._locks[self.slot_for(key)]
        if self._timeout_seconds is None:
            lock.acquire()
            return lock

        if not lock.acquire(timeout=self._timeout_seconds):
            logger.warning(
                "transaction_lock_timeout key=%s slot=%s timeout_seconds=%s",
                key,
                self.slot_for(key),
                self._timeout_seconds,
            )
            raise LockAcquisitionTimeout(
                f"Timed out after {self._timeout_seconds}s waiting for the lock on {key}"
            )
        return lock

    @staticmethod
    def release(guard: threading.Lock) -> None:
        guard.release()

    @contextmanager
    def locked(self, key: UUID | str) -> Iterator[None]:
        """Hold the key's lock for the duration of the block."""

        guard = self.acquire(key)
        try:
            yield
        finally:
            self.release(guard)
