"""
Trigger dispatcher.

Evaluates each newly stored event against all active triggers across all
agents. When a trigger's filter matches, the prompt template is rendered
with the event and an agent session is started via the executor.

Matching runs synchronously on the caller. Execution is fire-and-forget:
it is scheduled as an asyncio task and its failure only reaches the error
sink, never the ingestion path.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import time
from typing import TYPE_CHECKING, Callable, Iterable, Union

from ..core.filters import matches_filter
from ..core.prompt import interpolate_prompt

if TYPE_CHECKING:
    from ..core.executor import AgentExecutor
    from ..core.models import AgentConfig, ExecuteRequest, StoredEvent, Trigger
    from ..core.trigger_store import TriggerStore

log = logging.getLogger("callboard.dispatch")

ErrorSink = Callable[["ExecuteRequest", BaseException], None]
_Pending = Union["asyncio.Future[object]", "concurrent.futures.Future[object]"]


def _now_ms() -> int:
    return int(time.time() * 1000)


def log_execute_error(request: "ExecuteRequest", exc: BaseException) -> None:
    log.error("Trigger dispatch failed  agent=%s trigger=%s error=%s",
              request.agent_alias, request.metadata.get("triggerId"), exc)


class TriggerDispatcher:
    """Fans one event out to every matching active trigger."""

    def __init__(
        self,
        list_agents: "Callable[[], Iterable[AgentConfig]]",
        triggers: "TriggerStore",
        executor: "AgentExecutor",
        on_error: ErrorSink = log_execute_error,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._list_agents = list_agents
        self._triggers = triggers
        self._executor = executor
        self._on_error = on_error
        self._loop = loop
        self._clock = clock
        self._pending: set[_Pending] = set()

    def dispatch(self, event: "StoredEvent") -> int:
        """Evaluate the event against every active trigger. Returns how many fired."""
        try:
            agents = list(self._list_agents())
        except Exception:
            log.error("Failed to list agents  event=%s:%s", event.source, event.event_type, exc_info=True)
            return 0

        fired = 0
        for agent in agents:
            for trigger in self._triggers.list(agent.alias):
                if trigger.status != "active":
                    continue
                if not matches_filter(event, trigger.filter):
                    continue

                log.info("Trigger matched  name=%s id=%s event=%s:%s agent=%s",
                         trigger.name, trigger.id, event.source, event.event_type, agent.alias)
                self._record_hit(agent.alias, trigger)
                self._fire(self._build_request(agent.alias, trigger, event))
                fired += 1
        return fired

    def _record_hit(self, alias: str, trigger: "Trigger") -> None:
        """Best-effort stats update; a failure never stops the fan-out."""
        try:
            self._triggers.update(alias, trigger.id, {
                "last_triggered": self._clock(),
                "trigger_count": trigger.trigger_count + 1,
            })
        except Exception:
            log.warning("Failed to update trigger stats  agent=%s trigger=%s",
                        alias, trigger.id, exc_info=True)

    def _build_request(self, alias: str, trigger: "Trigger", event: "StoredEvent") -> "ExecuteRequest":
        from ..core.models import ExecuteRequest

        return ExecuteRequest(
            agent_alias=alias,
            prompt=interpolate_prompt(trigger.action.prompt or "", event),
            triggered_by="trigger",
            metadata={
                "triggerId": trigger.id,
                "triggerName": trigger.name,
                "eventSource": event.source,
                "eventType": event.event_type,
                "eventId": event.id,
            },
            max_turns=trigger.action.max_turns,
        )

    def _fire(self, request: "ExecuteRequest") -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        future: _Pending
        try:
            if running is not None:
                future = running.create_task(self._executor.execute(request))
            elif self._loop is not None and self._loop.is_running():
                future = asyncio.run_coroutine_threadsafe(self._executor.execute(request), self._loop)
            else:
                log.error("No event loop to run agent  agent=%s trigger=%s",
                          request.agent_alias, request.metadata.get("triggerId"))
                return
        except Exception as e:
            self._on_error(request, e)
            return

        self._pending.add(future)
        future.add_done_callback(lambda f: self._on_done(request, f))

    def _on_done(self, request: "ExecuteRequest", future: _Pending) -> None:
        self._pending.discard(future)
        if future.cancelled():
            log.info("Agent run cancelled  agent=%s trigger=%s",
                     request.agent_alias, request.metadata.get("triggerId"))
            return
        exc = future.exception()
        if exc is None:
            return
        try:
            self._on_error(request, exc)
        except Exception:
            log.exception("Error sink failed  agent=%s", request.agent_alias)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight agent run started so far."""
        while self._pending:
            await asyncio.gather(
                *(asyncio.wrap_future(f) if isinstance(f, concurrent.futures.Future) else f
                  for f in list(self._pending)),
                return_exceptions=True,
            )
