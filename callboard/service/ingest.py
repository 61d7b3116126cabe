"""
Ingestion entry points for pollers and webhook handlers.

append_event() stores an event once; dispatch_event() fans a stored event
out to the triggers. ingest() does both, dispatching only events that were
actually stored, so replays and retries never fire a trigger twice.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..core.event_log import EventStore
    from ..core.models import IngestedEvent, StoredEvent
    from .dispatcher import TriggerDispatcher

log = logging.getLogger("callboard.ingest")


class EventIngestor:
    """Single ingestion pipeline: append, then dispatch."""

    def __init__(self, store: "EventStore", dispatcher: "TriggerDispatcher") -> None:
        self.store = store
        self.dispatcher = dispatcher

    def append_event(self, raw: "dict[str, Any] | IngestedEvent") -> "StoredEvent | None":
        """Returns None for a duplicate. Storage write failures propagate."""
        return self.store.append(raw)

    def dispatch_event(self, event: "StoredEvent") -> None:
        """Fire-and-forget. Rule evaluation faults are logged, never raised."""
        try:
            self.dispatcher.dispatch(event)
        except Exception:
            log.error("Dispatch failed  event=%s:%s id=%s",
                      event.source, event.event_type, event.id, exc_info=True)

    def ingest(self, raw: "dict[str, Any] | IngestedEvent") -> "StoredEvent | None":
        stored = self.append_event(raw)
        if stored is not None:
            log.debug("Ingested  source=%s type=%s id=%s", stored.source, stored.event_type, stored.id)
            self.dispatch_event(stored)
        return stored
