"""
Tests for import locks.

Verifies:
1. At most one holder per key while the TTL has not elapsed
2. An expired lock is re-acquirable (crashed holder recovery)
3. hold() releases on normal exit and on exceptions
4. hold() never drops a lock acquired by a later holder
5. Under thread contention exactly one acquirer wins
"""

from __future__ import annotations

import threading

import pytest

from seogen_receiver.core.locks import (
    LOCK_KEY_PREFIX,
    ImportLockManager,
    InMemoryLockStore,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryLockStore:
    return InMemoryLockStore(clock=clock)


@pytest.fixture
def locks(store: InMemoryLockStore) -> ImportLockManager:
    return ImportLockManager(store, default_ttl=60)


class TestLockKey:
    def test_key_is_prefixed_md5(self) -> None:
        key = ImportLockManager.lock_key("plumbing|austin-tx")

        assert key.startswith(LOCK_KEY_PREFIX)
        assert len(key) == len(LOCK_KEY_PREFIX) + 32

    def test_distinct_keys_hash_differently(self) -> None:
        assert ImportLockManager.lock_key("a") != ImportLockManager.lock_key("b")


class TestAcquireRelease:
    def test_second_acquire_fails(self, locks: ImportLockManager) -> None:
        assert locks.acquire("k") is True
        assert locks.acquire("k") is False

    def test_different_keys_independent(self, locks: ImportLockManager) -> None:
        assert locks.acquire("k1") is True
        assert locks.acquire("k2") is True

    def test_release_allows_reacquire(self, locks: ImportLockManager) -> None:
        locks.acquire("k")
        locks.release("k")
        assert locks.acquire("k") is True

    def test_release_of_unheld_key_is_noop(self, locks: ImportLockManager) -> None:
        locks.release("never-held")
        assert locks.acquire("never-held") is True

    def test_expired_lock_can_be_taken(
        self, locks: ImportLockManager, clock: FakeClock
    ) -> None:
        assert locks.acquire("k") is True

        clock.advance(59)
        assert locks.acquire("k") is False

        clock.advance(1)
        assert locks.acquire("k") is True

    def test_zero_ttl_is_not_replaced_by_default(
        self, locks: ImportLockManager, clock: FakeClock
    ) -> None:
        assert locks.acquire("k", ttl=0) is True
        # Expires at acquisition time; a 60s default would still block here
        assert locks.acquire("k") is True

    def test_hold_zero_ttl(self, locks: ImportLockManager, clock: FakeClock) -> None:
        with locks.hold("k", ttl=0) as acquired:
            assert acquired is True
            assert locks.acquire("k") is True

    def test_custom_ttl(self, locks: ImportLockManager, clock: FakeClock) -> None:
        locks.acquire("k", ttl=5)
        clock.advance(5)
        assert locks.acquire("k") is True


class TestHold:
    def test_hold_acquires_and_releases(
        self, locks: ImportLockManager, store: InMemoryLockStore
    ) -> None:
        lock_key = ImportLockManager.lock_key("k")

        with locks.hold("k") as acquired:
            assert acquired is True
            assert store.is_held(lock_key)

        assert not store.is_held(lock_key)

    def test_hold_when_busy_yields_false_and_keeps_lock(
        self, locks: ImportLockManager, store: InMemoryLockStore
    ) -> None:
        locks.acquire("k")

        with locks.hold("k") as acquired:
            assert acquired is False

        assert store.is_held(ImportLockManager.lock_key("k"))

    def test_hold_releases_on_exception(
        self, locks: ImportLockManager, store: InMemoryLockStore
    ) -> None:
        with pytest.raises(RuntimeError):
            with locks.hold("k"):
                raise RuntimeError("store exploded")

        assert not store.is_held(ImportLockManager.lock_key("k"))

    def test_expired_holder_does_not_release_successor(
        self, locks: ImportLockManager, store: InMemoryLockStore, clock: FakeClock
    ) -> None:
        lock_key = ImportLockManager.lock_key("k")

        with locks.hold("k", ttl=10) as first:
            assert first is True
            clock.advance(11)

            # Successor takes the expired lock while the first holder still runs
            assert locks.acquire("k") is True

        assert store.is_held(lock_key)


class TestContention:
    def test_exactly_one_thread_wins(self) -> None:
        locks = ImportLockManager(InMemoryLockStore())
        barrier = threading.Barrier(16)
        results: list[bool] = []
        results_mutex = threading.Lock()

        def worker() -> None:
            barrier.wait()
            acquired = locks.acquire("plumbing|austin-tx")
            with results_mutex:
                results.append(acquired)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 15
