"""Tests for the deduplication cache."""

import pytest

from radar.core.types import DedupCapacities
from radar.ingest.dedupe import DedupCache, LRUCache, event_id


class TestLRUCache:
    """Test bounded LRU semantics."""

    def test_check_and_mark_first_time(self):
        """First sighting returns True and records the key."""
        cache = LRUCache(3)

        assert cache.check_and_mark("sig1") is True
        assert cache.seen("sig1") is True
        assert len(cache) == 1

    def test_check_and_mark_repeat(self):
        """Repeat sighting returns False and does not grow the cache."""
        cache = LRUCache(3)
        cache.check_and_mark("sig1")

        assert cache.check_and_mark("sig1") is False
        assert len(cache) == 1

    def test_eviction_removes_least_recently_used(self):
        """Inserting at capacity evicts exactly the oldest key."""
        cache = LRUCache(2)
        cache.mark("a")
        cache.mark("b")
        cache.mark("c")

        assert len(cache) == 2
        assert cache.seen("a") is False
        assert cache.keys() == ["b", "c"]

    def test_repeat_check_promotes_key(self):
        """A repeated check_and_mark refreshes recency."""
        cache = LRUCache(2)
        cache.mark("a")
        cache.mark("b")

        cache.check_and_mark("a")
        cache.mark("c")

        assert cache.seen("a") is True
        assert cache.seen("b") is False

    def test_seen_does_not_promote(self):
        """Membership lookups leave recency untouched."""
        cache = LRUCache(2)
        cache.mark("a")
        cache.mark("b")

        assert cache.seen("a") is True
        cache.mark("c")

        assert cache.seen("a") is False
        assert cache.seen("b") is True

    def test_evicted_key_is_new_again(self):
        """Evicted keys are forgotten."""
        cache = LRUCache(1)
        cache.check_and_mark("a")
        cache.check_and_mark("b")

        assert cache.check_and_mark("a") is True

    def test_size_never_exceeds_capacity(self):
        """Size stays bounded under a long stream."""
        cache = LRUCache(10)
        for i in range(100):
            cache.check_and_mark(f"sig{i}")

        assert len(cache) == 10
        assert cache.keys() == [f"sig{i}" for i in range(90, 100)]

    def test_discard_and_clear(self):
        """Keys can be removed individually or all at once."""
        cache = LRUCache(5)
        cache.mark("a")
        cache.mark("b")

        cache.discard("a")
        cache.discard("missing")
        assert "a" not in cache
        assert "b" in cache

        cache.clear()
        assert len(cache) == 0

    def test_invalid_capacity(self):
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            LRUCache(0)


class TestDedupCache:
    """Test the three independent key spaces."""

    @pytest.fixture
    def dedup(self):
        return DedupCache(DedupCapacities(signatures=3, mints=2, events=2))

    def test_default_capacities(self):
        """Defaults match the production sizes."""
        dedup = DedupCache()

        assert dedup.signatures.capacity == 50000
        assert dedup.mints.capacity == 10000
        assert dedup.events.capacity == 20000

    def test_key_spaces_are_independent(self, dedup):
        """The same key in different spaces does not collide."""
        assert dedup.check_and_mark_signature("X") is True
        assert dedup.has_seen_mint("X") is False

        dedup.mark_mint("X")
        assert dedup.has_seen_mint("X") is True
        assert dedup.has_processed_event("X") is False

    def test_signature_gate(self, dedup):
        """Signatures pass once."""
        assert dedup.check_and_mark_signature("sig") is True
        assert dedup.check_and_mark_signature("sig") is False
        assert dedup.has_seen_signature("sig") is True

    def test_event_ids(self, dedup):
        """Event ids combine signature, type and index."""
        key = event_id("sig", "SWAP", 1)
        assert key == "sig:SWAP:1"

        dedup.mark_event_processed(key)
        assert dedup.has_processed_event(key) is True
        assert dedup.has_processed_event(event_id("sig", "SWAP")) is False

    def test_stats_and_clear(self, dedup):
        """Stats report per-space sizes; clear empties all spaces."""
        dedup.check_and_mark_signature("s1")
        dedup.mark_mint("m1")

        stats = dedup.stats()
        assert stats["signatures"] == 1
        assert stats["mints"] == 1
        assert stats["events"] == 0

        dedup.clear()
        assert dedup.stats()["signatures"] == 0
        assert dedup.stats()["mints"] == 0
