"""
Tests for CacheLifecycleManager: write-back, hit counting, expiry sweep
"""
import asyncio
import os
import sys
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from diagnosis_fixtures import NOW, make_entry
from plantdoc.exceptions import PersistenceFailure
from plantdoc.services.diagnosis.cache_lifecycle import SWEEP_LOCK_KEY, CacheLifecycleManager
from plantdoc.services.stores.memory import InMemoryDiagnosisCacheStore


def run(coro):
    return asyncio.run(coro)


class SlowSweepStore(InMemoryDiagnosisCacheStore):
    """cleanup_expired blocks until released"""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.sweeps = 0

    async def cleanup_expired(self, now=None):
        self.sweeps += 1
        self.started.set()
        await self.release.wait()
        return await super().cleanup_expired(now)


class BrokenStore(InMemoryDiagnosisCacheStore):

    async def create(self, entry):
        raise PersistenceFailure("diagnosis_cache insert", ConnectionError("down"))

    async def increment_hit_count(self, cache_id):
        raise PersistenceFailure("diagnosis_cache hit increment", ConnectionError("down"))


# =============================================================================
# Write-back
# =============================================================================
class TestSaveEntry:

    def test_entry_gets_ttl_and_zero_hits(self):
        store = InMemoryDiagnosisCacheStore()
        lifecycle = CacheLifecycleManager(store, ttl_days=90)

        entry = run(lifecycle.save_entry(
            "yellow spots on leaves", {"leaf-curl", "white-spots"}, "Leaf Spot", "{}", now=NOW,
        ))

        assert entry.hit_count == 0
        assert entry.created_at == NOW
        assert entry.expires_at == NOW + timedelta(days=90)
        assert entry.symptom_ids == ["leaf-curl", "white-spots"]
        assert run(store.get(entry.id)) == entry

    def test_unique_ids(self):
        lifecycle = CacheLifecycleManager(InMemoryDiagnosisCacheStore())
        a = run(lifecycle.save_entry("a", set(), "X", "{}"))
        b = run(lifecycle.save_entry("a", set(), "X", "{}"))
        assert a.id != b.id

    def test_persistence_failure_propagates(self):
        lifecycle = CacheLifecycleManager(BrokenStore())
        with pytest.raises(PersistenceFailure) as exc_info:
            run(lifecycle.save_entry("a", set(), "X", "{}"))
        assert "insert failed" in exc_info.value.message


# =============================================================================
# Hit counting
# =============================================================================
class TestHitCount:

    def test_each_increment_counts(self):
        store = InMemoryDiagnosisCacheStore()
        run(store.create(make_entry(cache_id="c1")))
        lifecycle = CacheLifecycleManager(store)

        counts = []
        for _ in range(3):
            assert run(lifecycle.increment_hit_count("c1")) is True
            counts.append(run(store.get("c1")).hit_count)
        assert counts == [1, 2, 3]

    def test_concurrent_increments_not_lost(self):
        store = InMemoryDiagnosisCacheStore()
        lifecycle = CacheLifecycleManager(store)

        async def scenario():
            await store.create(make_entry(cache_id="c1"))
            await asyncio.gather(*[lifecycle.increment_hit_count("c1") for _ in range(20)])
            return await store.get("c1")

        assert run(scenario()).hit_count == 20

    def test_missing_entry_returns_false(self):
        lifecycle = CacheLifecycleManager(InMemoryDiagnosisCacheStore())
        assert run(lifecycle.increment_hit_count("gone")) is False

    def test_store_failure_returns_false(self):
        lifecycle = CacheLifecycleManager(BrokenStore())
        assert run(lifecycle.increment_hit_count("c1")) is False


# =============================================================================
# Active entries / stats
# =============================================================================
class TestActiveEntries:

    def test_expired_excluded_and_sorted_by_hits(self):
        store = InMemoryDiagnosisCacheStore()
        run(store.create(make_entry(cache_id="low", hit_count=1)))
        run(store.create(make_entry(cache_id="high", hit_count=7)))
        run(store.create(make_entry(cache_id="expired", hit_count=50, expires_in=timedelta(seconds=-5))))
        lifecycle = CacheLifecycleManager(store)

        active = run(lifecycle.get_active_entries())
        assert [e.id for e in active] == ["high", "low"]

        stats = run(lifecycle.get_stats())
        assert stats["active_entries"] == 2
        assert stats["total_hits"] == 8
        assert stats["ttl_days"] == 90
        assert stats["sweep_running"] is False


# =============================================================================
# Expiry sweep
# =============================================================================
class TestCleanupExpired:

    def test_removes_expired_once(self):
        store = InMemoryDiagnosisCacheStore()
        run(store.create(make_entry(cache_id="a", expires_in=timedelta(seconds=-1))))
        run(store.create(make_entry(cache_id="b", expires_in=timedelta(seconds=-1))))
        run(store.create(make_entry(cache_id="live")))
        lifecycle = CacheLifecycleManager(store)

        assert run(lifecycle.cleanup_expired()) == 2
        assert run(lifecycle.cleanup_expired()) == 0
        assert len(store) == 1

    def test_overlapping_sweep_returns_zero(self):
        async def scenario():
            store = SlowSweepStore()
            await store.create(make_entry(cache_id="a", expires_in=timedelta(seconds=-1)))
            lifecycle = CacheLifecycleManager(store)

            first = asyncio.create_task(lifecycle.cleanup_expired())
            await store.started.wait()
            second = await lifecycle.cleanup_expired()
            store.release.set()
            return await first, second, store.sweeps

        first, second, sweeps = run(scenario())
        assert (first, second, sweeps) == (1, 0, 1)
        print("  PASS: overlapping sweep skipped")

    def test_redis_lock_held_elsewhere_skips(self):
        store = InMemoryDiagnosisCacheStore()
        run(store.create(make_entry(cache_id="a", expires_in=timedelta(seconds=-1))))
        redis_client = MagicMock()
        redis_client.set.return_value = None

        lifecycle = CacheLifecycleManager(store, redis_client=redis_client, lock_ttl=30)
        assert run(lifecycle.cleanup_expired()) == 0
        assert len(store) == 1
        redis_client.eval.assert_not_called()

    def test_redis_outage_still_sweeps(self):
        store = InMemoryDiagnosisCacheStore()
        run(store.create(make_entry(cache_id="a", expires_in=timedelta(seconds=-1))))
        redis_client = MagicMock()
        redis_client.set.side_effect = ConnectionError("redis down")

        lifecycle = CacheLifecycleManager(store, redis_client=redis_client, lock_ttl=30)
        assert run(lifecycle.cleanup_expired()) == 1
        assert len(store) == 0
        redis_client.eval.assert_not_called()

    def test_redis_lock_acquired_and_released(self):
        store = InMemoryDiagnosisCacheStore()
        run(store.create(make_entry(cache_id="a", expires_in=timedelta(seconds=-1))))
        redis_client = MagicMock()
        redis_client.set.return_value = True
        redis_client.eval.return_value = 1

        lifecycle = CacheLifecycleManager(store, redis_client=redis_client, lock_ttl=30)
        assert run(lifecycle.cleanup_expired()) == 1

        args, kwargs = redis_client.set.call_args
        assert args[0] == SWEEP_LOCK_KEY
        assert kwargs == {"nx": True, "ex": 30}
        token = args[1]
        assert redis_client.eval.call_args[0][2:] == (SWEEP_LOCK_KEY, token)


# =============================================================================
# Background task
# =============================================================================
class TestBackgroundSweep:

    def test_start_is_idempotent_and_stop_cancels(self):
        async def scenario():
            lifecycle = CacheLifecycleManager(InMemoryDiagnosisCacheStore())
            task = lifecycle.start_background_sweep(3600)
            again = lifecycle.start_background_sweep(3600)
            same = task is again
            await lifecycle.stop_background_sweep()
            return same, task.done(), lifecycle._sweep_task

        same, done, remaining = run(scenario())
        assert same is True
        assert done is True
        assert remaining is None

    def test_periodic_sweep_runs_and_stops(self):
        async def scenario():
            store = InMemoryDiagnosisCacheStore()
            await store.create(make_entry(cache_id="a", expires_in=timedelta(seconds=-1)))
            lifecycle = CacheLifecycleManager(store)
            stop = asyncio.Event()
            stop.set()
            await asyncio.wait_for(lifecycle.run_periodic_sweep(0, stop_event=stop), timeout=2)
            return len(store)

        assert run(scenario()) == 0
