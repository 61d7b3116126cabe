"""
AgentExecutor ABC, LoggingExecutor and MockExecutor for testing.

An executor starts an agent session for a fired trigger. The dispatcher
never awaits it; whatever the coroutine raises is routed to the
dispatcher's error sink.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import ExecuteRequest

log = logging.getLogger("callboard.executor")


class AgentExecutor(ABC):
    """Abstract base for whatever runs an agent session."""

    @abstractmethod
    async def execute(self, request: "ExecuteRequest") -> Any: ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class LoggingExecutor(AgentExecutor):
    """Logs requests and does nothing else. Default when no runner is wired in."""

    async def execute(self, request: "ExecuteRequest") -> None:
        log.info("Execute requested  agent=%s trigger=%s max_turns=%s",
                 request.agent_alias, request.metadata.get("triggerId"), request.max_turns)


class MockExecutor(AgentExecutor):
    """Records requests for tests. With fail=True raises after recording."""

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.requests: list["ExecuteRequest"] = []
        self._fail = fail
        self._delay = delay

    async def execute(self, request: "ExecuteRequest") -> str:
        self.requests.append(request)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise RuntimeError(f"agent {request.agent_alias} failed")
        return "ok"
