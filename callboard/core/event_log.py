"""
Per-connection event log.

Events from ingestors are stored in append-only JSONL files keyed by
connection alias (the route name).

Storage layout:
  events/{source}/events.jsonl

Each line is a JSON object with the raw event data plus a local write
timestamp (storedAt). Queries always sort explicitly by storedAt, newest
first; on-disk order is never trusted.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

from pydantic import ValidationError

from .dedup import DedupCache

if TYPE_CHECKING:
    from ..config import Config
    from .models import IngestedEvent, StoredEvent

log = logging.getLogger("callboard.events")

EVENTS_FILE = "events.jsonl"
DEFAULT_LIMIT = 100
SOURCE_CAP = 10000


def _now_ms() -> int:
    return int(time.time() * 1000)


def _valid_source(source: str) -> bool:
    """A source must be a single, non-hidden path segment."""
    return bool(source) and "/" not in source and "\\" not in source and not source.startswith(".")


def _parse_ms(received_at: str) -> int | None:
    try:
        dt = datetime.fromisoformat(received_at.replace("Z", "+00:00"))
    except ValueError:
        return None
    return int(dt.timestamp() * 1000)


def normalize_event(raw: "dict[str, Any] | IngestedEvent") -> "IngestedEvent":
    """Validate raw ingestor fields and fill in derived ones."""
    from .models import IngestedEvent

    event = raw if isinstance(raw, IngestedEvent) else IngestedEvent.model_validate(raw)
    updates: dict[str, Any] = {}
    if not event.idempotency_key:
        updates["idempotency_key"] = f"{event.source}:{event.id}"
    if event.received_at_ms is None:
        updates["received_at_ms"] = _parse_ms(event.received_at) or _now_ms()
    return event.model_copy(update=updates) if updates else event


class EventStore:
    """Append-only, source-partitioned event log with idempotent writes."""

    def __init__(
        self,
        events_dir: Path,
        dedup: DedupCache | None = None,
        source_cap: int = SOURCE_CAP,
    ) -> None:
        self._events_dir = events_dir
        self._source_cap = source_cap
        self._lock = threading.Lock()
        self.dedup = dedup if dedup is not None else DedupCache(seed=self.tail_keys)

    @classmethod
    def from_config(cls, config: "Config") -> "EventStore":
        store = cls(events_dir=config.events_dir, source_cap=config.source_cap)
        store.dedup = DedupCache(
            capacity=config.max_seen_keys,
            seed_tail_lines=config.seed_tail_lines,
            seed=store.tail_keys,
        )
        return store

    def _path(self, source: str) -> Path:
        return self._events_dir / source / EVENTS_FILE

    # ── Writes ────────────────────────────────────────────────────────────────

    def append(self, raw: "dict[str, Any] | IngestedEvent") -> "StoredEvent | None":
        """
        Append an event to its source's log.
        Returns the stored event, or None if the idempotency key was already seen.
        Write failures propagate to the caller.
        """
        from .models import StoredEvent

        event = normalize_event(raw)
        if not _valid_source(event.source):
            raise ValueError(f"Invalid event source: {event.source!r}")

        with self._lock:
            if self.dedup.has(event.idempotency_key):
                log.debug("Duplicate skipped  source=%s type=%s key=%s",
                          event.source, event.event_type, event.idempotency_key)
                return None

            stored = StoredEvent(**event.model_dump(), stored_at=_now_ms())
            path = self._path(event.source)
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(stored.to_json() + "\n")

            self.dedup.add(event.idempotency_key)

        log.debug("Event stored  source=%s type=%s id=%s", stored.source, stored.event_type, stored.id)
        return stored

    # ── Reads ─────────────────────────────────────────────────────────────────

    def _read(self, source: str) -> "list[StoredEvent]":
        from .models import StoredEvent

        if not _valid_source(source):
            return []
        path = self._path(source)
        if not path.exists():
            return []
        try:
            raw = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log.warning("Failed to read event log  source=%s error=%s", source, e)
            return []

        entries = []
        for lineno, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                entries.append(StoredEvent.model_validate_json(line))
            except ValidationError:
                log.debug("Skipping malformed line  source=%s line=%d", source, lineno)
        return entries

    def query(self, source: str, limit: int = DEFAULT_LIMIT, offset: int = 0) -> "list[StoredEvent]":
        """Events for one source, newest first."""
        entries = self._read(source)
        entries.sort(key=lambda e: e.stored_at, reverse=True)
        return entries[offset: offset + limit]

    def query_all(self, limit: int = DEFAULT_LIMIT, offset: int = 0) -> "list[StoredEvent]":
        """Events across all sources, newest first."""
        merged: list[StoredEvent] = []
        for source in self.list_sources():
            merged.extend(self.query(source, limit=self._source_cap))
        merged.sort(key=lambda e: e.stored_at, reverse=True)
        return merged[offset: offset + limit]

    def list_sources(self) -> list[str]:
        """Every source with at least one stored event, alphabetically."""
        if not self._events_dir.exists():
            return []
        sources = []
        try:
            for d in self._events_dir.iterdir():
                path = d / EVENTS_FILE
                if d.is_dir() and path.is_file() and path.stat().st_size > 0:
                    sources.append(d.name)
        except OSError as e:
            log.warning("Failed to list event sources: %s", e)
            return []
        return sorted(sources)

    def tail_keys(self, lines: int) -> Iterator[str]:
        """Idempotency keys from the last `lines` lines of every source log."""
        for source in self.list_sources():
            try:
                with self._path(source).open(encoding="utf-8", errors="replace") as f:
                    tail = deque(f, maxlen=lines)
            except OSError as e:
                log.warning("Failed to read event log tail  source=%s error=%s", source, e)
                continue
            for line in tail:
                if not line.strip():
                    continue
                try:
                    key = json.loads(line).get("idempotencyKey")
                except (ValueError, AttributeError):
                    continue
                if isinstance(key, str) and key:
                    yield key

    def __repr__(self) -> str:
        return f"EventStore(events_dir={str(self._events_dir)!r})"
