"""
Bounded in-memory set of recently seen idempotency keys.

Seeded lazily from the tail of the existing event logs on first use, then
maintained as events are stored. Guards the event log against duplicates
caused by webhook retries, reconnection replays, or proxy restarts.

The cache is advisory: a forgotten key costs one duplicate row on disk,
but a key is only ever added after a confirmed write, so it never
rejects an event that was not stored.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

log = logging.getLogger("callboard.dedup")

MAX_SEEN_KEYS = 5000
SEED_TAIL_LINES = 500


class DedupCache:
    """Insertion-ordered key set. On overflow the oldest half is evicted."""

    def __init__(
        self,
        capacity: int = MAX_SEEN_KEYS,
        seed_tail_lines: int = SEED_TAIL_LINES,
        seed: "Callable[[int], Iterable[str]] | None" = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.seed_tail_lines = seed_tail_lines
        self._seed = seed
        # dicts keep insertion order; values unused
        self._keys: dict[str, None] = {}
        self._seeded = seed is None

    def _ensure_seeded(self) -> None:
        if self._seeded:
            return
        self._seeded = True
        total = 0
        for key in self._seed(self.seed_tail_lines):
            self._insert(key)
            total += 1
        if total:
            log.info("Seeded dedup set  keys=%d", total)

    def _insert(self, key: str) -> None:
        self._keys.pop(key, None)
        self._keys[key] = None
        if len(self._keys) > self.capacity:
            self._prune()

    def _prune(self) -> None:
        prune_count = len(self._keys) // 2
        for key in list(self._keys)[:prune_count]:
            del self._keys[key]
        log.debug("Pruned dedup set  removed=%d kept=%d", prune_count, len(self._keys))

    def has(self, key: str) -> bool:
        self._ensure_seeded()
        return key in self._keys

    def add(self, key: str) -> None:
        self._ensure_seeded()
        self._insert(key)

    @property
    def seeded(self) -> bool:
        return self._seeded

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"DedupCache(size={len(self._keys)}, capacity={self.capacity})"
