"""Tests for BoundedTimedCache: capacity, LRU-by-timestamp eviction and sweeps."""

import random
import threading
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from serenity.cache.bounded_cache import BoundedTimedCache
from serenity.cache.clock import ManualClock
from serenity.cache.errors import CapacityInvariantViolation
from serenity.cache.metrics import CacheStatistics


@dataclass(frozen=True)
class Item:
    id: object
    value: str = ""


def make_cache(clock, **kwargs):
    kwargs.setdefault("capacity", 3)
    return BoundedTimedCache(clock=clock, **kwargs)


class TestConstruction:
    @pytest.mark.parametrize("capacity", [0, -1, 2.5, True])
    def test_rejects_invalid_capacity(self, capacity):
        with pytest.raises(CapacityInvariantViolation):
            BoundedTimedCache(capacity=capacity)

    @pytest.mark.parametrize("threshold", [0, -10])
    def test_rejects_non_positive_staleness(self, threshold):
        with pytest.raises(CapacityInvariantViolation):
            BoundedTimedCache(staleness_threshold=threshold)

    @pytest.mark.parametrize("ratio", [0, -0.5, 1.01])
    def test_rejects_ratio_out_of_range(self, ratio):
        with pytest.raises(CapacityInvariantViolation):
            BoundedTimedCache(high_water_ratio=ratio)

    def test_violation_is_also_value_error(self):
        with pytest.raises(ValueError):
            BoundedTimedCache(capacity=0)

    def test_defaults(self):
        cache = BoundedTimedCache()
        assert cache.capacity == 100
        assert cache.staleness_threshold == 1800.0
        assert cache.high_water_mark == 90
        assert cache.is_empty()


class TestEviction:
    def test_full_cache_evicts_oldest_on_insert(self, clock):
        """Capacity 3: A, B, C at t=1..3, D at t=4 evicts A."""
        cache = make_cache(clock)
        for t, key in enumerate("ABC", start=1):
            clock.set(t)
            cache.put(key, Item(key))

        clock.set(4)
        cache.put("D", Item("D"))

        assert sorted(cache.keys()) == ["B", "C", "D"]

    def test_read_refreshes_entry_and_protects_it(self, clock):
        """get(A) at t=4 moves A ahead of B, so D at t=5 evicts B."""
        cache = make_cache(clock)
        for t, key in enumerate("ABC", start=1):
            clock.set(t)
            cache.put(key, Item(key))

        clock.set(4)
        assert cache.get("A") == Item("A")
        assert cache.last_access("A") == 4

        clock.set(5)
        cache.put("D", Item("D"))

        assert "A" in cache
        assert "B" not in cache
        assert len(cache) == 3

    def test_overwrite_existing_key_never_evicts(self, clock):
        cache = make_cache(clock)
        for key in "ABC":
            cache.put(key, Item(key))

        clock.advance(1)
        cache.put("A", Item("A", "updated"))

        assert len(cache) == 3
        assert cache.get("A").value == "updated"
        assert cache.last_access("A") == 1

    def test_equal_timestamps_evict_least_recently_touched(self, clock):
        cache = make_cache(clock)
        for key in "ABC":
            cache.put(key, Item(key))
        cache.get("A")

        cache.put("D", Item("D"))

        assert "B" not in cache
        assert {"A", "C", "D"} == set(cache.keys())

    def test_evicted_entry_had_minimum_last_access(self):
        clock = ManualClock()
        cache = BoundedTimedCache(capacity=10, clock=clock)
        rng = random.Random(7)

        for step in range(300):
            clock.advance(rng.choice([0, 0.5, 1, 3]))
            if rng.random() < 0.4 and len(cache):
                cache.get(rng.choice(cache.keys()))
                continue

            key = rng.randrange(40)
            before = {k: cache.last_access(k) for k in cache.keys()}
            cache.put(key, Item(key))

            assert len(cache) <= cache.capacity
            removed = set(before) - set(cache.keys())
            if removed:
                (evicted,) = removed
                assert key not in before
                assert before[evicted] == min(before.values())

    def test_insert_many_respects_capacity(self, clock):
        cache = make_cache(clock)
        count = cache.insert_many(Item(i) for i in range(10))

        assert count == 10
        assert len(cache) == 3
        assert sorted(cache.keys()) == [7, 8, 9]

    def test_eviction_is_reported_to_metrics(self, clock):
        stats = CacheStatistics("items")
        cache = make_cache(clock, metrics=stats)
        cache.insert_many(Item(i) for i in range(4))

        assert stats.evictions == 1


class TestReads:
    def test_get_missing_key_returns_none(self, clock):
        cache = make_cache(clock)
        assert cache.get("nope") is None

    def test_repeated_get_returns_same_object(self, clock):
        cache = make_cache(clock)
        item = Item("A")
        cache.put("A", item)

        first = cache.get("A")
        second = cache.get("A")

        assert first is item
        assert second is item
        assert len(cache) == 1

    def test_last_access_never_moves_backwards(self, clock):
        cache = make_cache(clock)
        cache.put("A", Item("A"))
        previous = cache.last_access("A")

        cache.get("A")
        assert cache.last_access("A") >= previous

        clock.advance(2)
        cache.get("A")
        assert cache.last_access("A") > previous

    def test_pop_returns_entity_and_removes_it(self, clock):
        cache = make_cache(clock)
        cache.put("A", Item("A"))

        assert cache.pop("A") == Item("A")
        assert cache.pop("A") is None
        assert "A" not in cache

    def test_clear_empties_cache(self, clock):
        cache = make_cache(clock)
        cache.insert_many(Item(key) for key in "AB")

        cache.clear()

        assert cache.is_empty()
        assert "BoundedTimedCache" in repr(cache)

    def test_hits_and_misses_are_counted(self, clock):
        stats = CacheStatistics("items")
        cache = make_cache(clock, metrics=stats)
        cache.put("A", Item("A"))

        cache.get("A")
        cache.get("A")
        cache.get("B")

        assert stats.hits == 2
        assert stats.misses == 1

    def test_failing_metrics_hook_does_not_break_reads(self, clock):
        hook = MagicMock()
        hook.on_hit.side_effect = RuntimeError("metrics backend down")
        cache = make_cache(clock, metrics=hook)
        cache.put("A", Item("A"))

        assert cache.get("A") == Item("A")
        hook.on_hit.assert_called_once_with("A")


class TestSweep:
    def fill(self, cache, clock, count, stale):
        """Insert ``stale`` entries at t=0 and the rest at t=1000, then move to t=2000."""
        for i in range(stale):
            cache.put(f"old-{i}", Item(i))
        clock.set(1000)
        for i in range(count - stale):
            cache.put(f"new-{i}", Item(i))
        clock.set(2000)

    def test_below_high_water_mark_is_noop(self, clock):
        cache = BoundedTimedCache(capacity=100, clock=clock)
        self.fill(cache, clock, count=85, stale=85)

        assert cache.sweep() == 0
        assert len(cache) == 85

    def test_above_high_water_mark_removes_only_stale(self, clock):
        cache = BoundedTimedCache(capacity=100, clock=clock)
        self.fill(cache, clock, count=91, stale=5)

        assert cache.sweep() == 5
        assert len(cache) == 86
        assert not any(key.startswith("old-") for key in cache.keys())

    def test_exactly_at_high_water_mark_sweeps(self, clock):
        cache = BoundedTimedCache(capacity=100, clock=clock)
        self.fill(cache, clock, count=90, stale=3)

        assert cache.sweep() == 3

    def test_age_equal_to_threshold_is_kept(self, clock):
        cache = BoundedTimedCache(capacity=2, high_water_ratio=0.5, staleness_threshold=10, clock=clock)
        cache.put("edge", Item("edge"))
        clock.advance(10)

        assert cache.sweep() == 0
        clock.advance(0.001)
        assert cache.sweep() == 1

    def test_explicit_threshold_overrides_default(self, clock):
        cache = BoundedTimedCache(capacity=4, high_water_ratio=0.5, clock=clock)
        cache.put("a", Item("a"))
        clock.advance(60)
        cache.put("b", Item("b"))
        clock.advance(1)

        assert cache.sweep(30) == 1
        assert cache.keys() == ["b"]

    def test_sweep_leaves_no_stale_and_removes_no_fresh(self):
        clock = ManualClock()
        cache = BoundedTimedCache(capacity=50, high_water_ratio=0.1, clock=clock)
        rng = random.Random(11)
        for i in range(50):
            clock.advance(rng.uniform(0, 5))
            cache.put(i, Item(i))

        threshold = 60.0
        now = clock.now()
        before = {k: cache.last_access(k) for k in cache.keys()}
        cache.sweep(threshold)

        for key, stamp in before.items():
            if now - stamp > threshold:
                assert key not in cache
            else:
                assert key in cache

    def test_sweep_reports_to_metrics(self, clock):
        stats = CacheStatistics("items")
        cache = BoundedTimedCache(capacity=1, staleness_threshold=1, clock=clock, metrics=stats)
        cache.put("a", Item("a"))
        clock.advance(5)

        cache.sweep()

        assert stats.sweeps == 1
        assert stats.swept == 1

    def test_sweep_removed_count_goes_to_on_sweep(self, clock):
        hook = MagicMock()
        cache = BoundedTimedCache(capacity=4, staleness_threshold=1, clock=clock, metrics=hook)
        cache.put("a", Item("a"))

        cache.sweep()
        hook.on_sweep.assert_not_called()

        cache.insert_many(Item(key) for key in "bcd")
        clock.advance(5)
        cache.sweep()

        hook.on_sweep.assert_called_once_with(4)


def test_concurrent_threads_keep_capacity():
    cache = BoundedTimedCache(capacity=20)

    def worker(offset):
        for i in range(500):
            cache.put(offset * 1000 + i, Item(i))
            cache.get(offset * 1000 + i // 2)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) == 20
