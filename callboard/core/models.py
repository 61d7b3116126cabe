"""
Pure Pydantic data models for Callboard.

No logic, no I/O. These are the serializable data layer:
- Appended to the per-source event logs
- Saved to the per-agent trigger files
- Sent over the HTTP API

On disk and on the wire fields are camelCase; in Python they are snake_case.
Both spellings are accepted on input.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models persisted with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self, **kwargs: Any) -> str:
        return self.model_dump_json(by_alias=True, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ── Event models ──────────────────────────────────────────────────────────────


class IngestedEvent(CamelModel):
    """Raw event fields as handed over by an ingestor, before storage."""
    id: int                                  # monotonically increasing per ingestor
    idempotency_key: str | None = None       # natural key, or derived "{source}:{id}"
    received_at: str                         # ISO-8601
    received_at_ms: int | None = None        # derived from received_at when absent
    source: str                              # connection alias, e.g. "github"
    event_type: str                          # e.g. "push", "MESSAGE_CREATE"
    data: JsonValue = None


class StoredEvent(CamelModel):
    """One line of events/{source}/events.jsonl. Immutable once written."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    idempotency_key: str
    received_at: str
    received_at_ms: int
    source: str
    event_type: str
    data: JsonValue = None
    stored_at: int                           # local write time, epoch ms


# ── Trigger models ────────────────────────────────────────────────────────────


class FilterCondition(CamelModel):
    """A single data-field check. Unknown operators load fine and never match."""
    field: str                               # dot-path into event.data
    operator: str
    value: str | None = None


class TriggerFilter(CamelModel):
    """All specified parts must match. Unset or empty means match any."""
    source: str | None = None
    event_type: str | None = None
    conditions: list[FilterCondition] = []


class TriggerAction(CamelModel):
    type: Literal["start_session", "send_message"] = "start_session"
    prompt: str | None = None                # {{event.*}} interpolated at dispatch
    folder: str | None = None
    max_turns: int | None = None


class TriggerCreate(CamelModel):
    """A trigger before it has been assigned an id."""
    name: str
    description: str = ""
    status: Literal["active", "paused"] = "active"
    filter: TriggerFilter
    action: TriggerAction = Field(default_factory=TriggerAction)
    last_triggered: int | None = None
    trigger_count: int = 0


class Trigger(TriggerCreate):
    """A persisted trigger. Saved to agents/{alias}/triggers.json."""
    id: str


# ── Agent models ──────────────────────────────────────────────────────────────


class AgentConfig(BaseModel):
    """Agent definition loaded from agents/{alias}/agent.md."""
    alias: str                               # directory name
    name: str                                # from front matter, or alias
    description: str = ""
    system_prompt: str = ""                  # .md body with front matter stripped


class ExecuteRequest(CamelModel):
    """What the dispatcher hands to the agent executor when a trigger fires."""
    agent_alias: str
    prompt: str
    triggered_by: Literal["trigger"] = "trigger"
    metadata: dict[str, Any] = {}
    max_turns: int | None = None


# ── API response models ───────────────────────────────────────────────────────


class BacktestResult(CamelModel):
    total_scanned: int
    match_count: int
    matches: list[StoredEvent]
