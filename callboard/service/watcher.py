"""
Event watchers: one polling loop per event source client.

Each cycle asks the source which connections are live, then polls every
connection concurrently with its own cursor. Event ids are per-ingestor,
so a busy connection must not advance the cursor of a quiet one. Failed
cycles back off exponentially; a good cycle resets the interval.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .ingest import EventIngestor

log = logging.getLogger("callboard.watcher")

BASE_POLL_INTERVAL = 3.0
MAX_BACKOFF = 60.0


class EventSource(ABC):
    """Client for a process that buffers ingested events (the proxy)."""

    name: str = "default"

    @abstractmethod
    async def ingestor_status(self) -> list[str]:
        """Names of the connections that currently have an ingestor."""

    @abstractmethod
    async def poll_events(self, connection: str, after_id: int) -> "list[dict[str, Any]] | dict[str, Any]":
        """Events with id > after_id, as a list or wrapped in {"events": [...]}."""


class EventWatcher:
    def __init__(
        self,
        source: EventSource,
        ingestor: "EventIngestor",
        poll_interval: float = BASE_POLL_INTERVAL,
        max_backoff: float = MAX_BACKOFF,
    ) -> None:
        self.source = source
        self._ingestor = ingestor
        self.poll_interval = poll_interval
        self.max_backoff = max_backoff
        self.cursors: dict[str, int] = {}
        self.current_backoff = poll_interval
        self.consecutive_failures = 0
        self._task: asyncio.Task | None = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        log.info("Watcher started  source=%s interval=%.1fs", self.source.name, self.poll_interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("Watcher stopped  source=%s", self.source.name)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.current_backoff)
            await self.poll_once()

    # ── Polling ───────────────────────────────────────────────────────────────

    async def poll_once(self) -> int:
        """Run one poll cycle. Returns the number of events stored."""
        try:
            connections = await self.source.ingestor_status()
            results = await asyncio.gather(
                *(self._poll_connection(c) for c in connections),
                return_exceptions=True,
            )
        except Exception as e:
            self.consecutive_failures += 1
            self.current_backoff = min(
                self.poll_interval * 2 ** self.consecutive_failures, self.max_backoff,
            )
            log.warning("Poll failed  source=%s attempt=%d next_in=%.1fs error=%s",
                        self.source.name, self.consecutive_failures, self.current_backoff, e)
            return 0

        stored = 0
        for connection, result in zip(connections, results):
            if isinstance(result, BaseException):
                log.warning("Connection poll failed  source=%s connection=%s error=%s",
                            self.source.name, connection, result)
            else:
                stored += result

        self.consecutive_failures = 0
        self.current_backoff = self.poll_interval
        return stored

    async def _poll_connection(self, connection: str) -> int:
        cursor = self.cursors.get(connection, -1)
        result = await self.source.poll_events(connection, cursor)
        events = result.get("events", []) if isinstance(result, dict) else result
        if not events:
            return 0

        log.debug("Received  source=%s connection=%s count=%d", self.source.name, connection, len(events))
        max_id = max(int(e["id"]) for e in events)
        if max_id > cursor:
            self.cursors[connection] = max_id

        stored = 0
        for raw in events:
            if self._ingestor.ingest(raw) is not None:
                stored += 1
        return stored
