"""
SEOgen Receiver - Import Locks

Short-TTL, non-blocking, single-owner advisory locks keyed by canonical key.

Acquisition is ONE atomic "set if absent" against shared storage; an entry
whose TTL has elapsed counts as absent, so a crashed holder blocks other
importers for at most `ttl` seconds.

Usage:
    locks = ImportLockManager(InMemoryLockStore())

    with locks.hold(canonical_key) as acquired:
        if not acquired:
            return conflict()
        ...  # released on every exit path
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Dict, Generator, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 60
LOCK_KEY_PREFIX = "seogen_import_lock_"


class LockStore(Protocol):
    """Shared TTL key-value storage backing the import locks."""

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Atomically store `value` unless a live entry exists. True if stored."""
        ...

    def delete(self, key: str, expected_value: Optional[str] = None) -> None:
        """Remove `key`; when `expected_value` is given, only if it still matches."""
        ...


class InMemoryLockStore:
    """
    Process-local lock store.

    A single mutex guards the check and the write, which makes
    set_if_absent atomic for all threads of this process.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._mutex = threading.Lock()

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        now = self._clock()
        with self._mutex:
            current = self._entries.get(key)
            if current is not None and current[1] > now:
                return False
            self._entries[key] = (value, now + ttl_seconds)
            return True

    def delete(self, key: str, expected_value: Optional[str] = None) -> None:
        with self._mutex:
            current = self._entries.get(key)
            if current is None:
                return
            if expected_value is not None and current[0] != expected_value:
                return
            del self._entries[key]

    def is_held(self, key: str) -> bool:
        with self._mutex:
            current = self._entries.get(key)
            return current is not None and current[1] > self._clock()


class ImportLockManager:
    """Advisory import lock keyed by hash(canonical key)."""

    def __init__(self, store: LockStore, default_ttl: int = DEFAULT_LOCK_TTL_SECONDS):
        self._store = store
        self.default_ttl = default_ttl

    @staticmethod
    def lock_key(canonical_key: str) -> str:
        digest = hashlib.md5(canonical_key.encode("utf-8"), usedforsecurity=False).hexdigest()
        return LOCK_KEY_PREFIX + digest

    def acquire(self, key: str, ttl: Optional[int] = None) -> bool:
        """Try once to take the lock for `key`. Never waits."""
        return self._store.set_if_absent(
            self.lock_key(key), uuid.uuid4().hex, self.default_ttl if ttl is None else ttl
        )

    def release(self, key: str) -> None:
        self._store.delete(self.lock_key(key))

    @contextmanager
    def hold(self, key: str, ttl: Optional[int] = None) -> Generator[bool, None, None]:
        """
        Scoped acquisition: yields True if the lock was taken.

        The lock is released on normal exit and on exceptions. Release is
        bound to this holder's token, so a holder that outlived its TTL
        cannot drop a lock another request has since acquired.
        """
        lock_key = self.lock_key(key)
        token = uuid.uuid4().hex
        ttl_seconds = self.default_ttl if ttl is None else ttl
        acquired = self._store.set_if_absent(lock_key, token, ttl_seconds)
        if not acquired:
            logger.info("Import lock busy", extra={"canonical_key": key})
        try:
            yield acquired
        finally:
            if acquired:
                self._store.delete(lock_key, expected_value=token)
