"""In-memory LRU deduplication for signatures, mints and event ids."""

from collections import OrderedDict

import structlog

from ..core.types import DedupCapacities

logger = structlog.get_logger(__name__)


class LRUCache:
    """Bounded set of keys with strict least-recently-used eviction.

    Keys never expire by age, only by capacity pressure.
    """

    def __init__(self, capacity: int) -> None:
        """Initialize LRU cache.

        Args:
            capacity: Maximum number of keys kept
        """
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def seen(self, key: str) -> bool:
        """Check membership without touching recency."""
        return key in self._entries

    def mark(self, key: str) -> None:
        """Insert or touch a key, moving it to the most-recent end."""
        if key in self._entries:
            self._entries.move_to_end(key)
            return

        if len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)

        self._entries[key] = None

    def check_and_mark(self, key: str) -> bool:
        """Record a key and report whether this is the first time it is seen.

        Returns:
            True if the key was absent (and is now recorded), False otherwise
        """
        if key in self._entries:
            self._entries.move_to_end(key)
            return False

        self.mark(key)
        return True

    def discard(self, key: str) -> None:
        """Forget a key if present."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every key."""
        self._entries.clear()

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)


def event_id(signature: str, event_type: str, index: int = 0) -> str:
    """Build a composite event id."""
    return f"{signature}:{event_type}:{index}"


class DedupCache:
    """Three independent LRU key spaces used by the ingestion path."""

    def __init__(self, capacities: DedupCapacities | None = None) -> None:
        """Initialize dedup cache.

        Args:
            capacities: Per key-space capacities
        """
        capacities = capacities or DedupCapacities()
        self.signatures = LRUCache(capacities.signatures)
        self.mints = LRUCache(capacities.mints)
        self.events = LRUCache(capacities.events)

        logger.debug(
            "Dedup cache initialized",
            signatures=capacities.signatures,
            mints=capacities.mints,
            events=capacities.events,
        )

    def check_and_mark_signature(self, signature: str) -> bool:
        """True the first time a signature is seen."""
        return self.signatures.check_and_mark(signature)

    def has_seen_signature(self, signature: str) -> bool:
        return self.signatures.seen(signature)

    def has_seen_mint(self, mint: str) -> bool:
        return self.mints.seen(mint)

    def mark_mint(self, mint: str) -> None:
        self.mints.mark(mint)

    def has_processed_event(self, key: str) -> bool:
        return self.events.seen(key)

    def mark_event_processed(self, key: str) -> None:
        self.events.mark(key)

    def stats(self) -> dict[str, int]:
        """Current size of each key space."""
        return {
            "signatures": len(self.signatures),
            "mints": len(self.mints),
            "events": len(self.events),
        }

    def clear(self) -> None:
        """Clear every key space."""
        self.signatures.clear()
        self.mints.clear()
        self.events.clear()
