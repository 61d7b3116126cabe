"""
TriggerStore ABC with file and in-memory implementations.

Triggers are kept as one collection per agent. Every mutation is a
read-modify-write of the whole collection, so two concurrent edits of the
same agent's triggers can race (last writer wins). Trigger edits are rare,
single-operator actions, which keeps this acceptable.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

if TYPE_CHECKING:
    from .models import Trigger, TriggerCreate

log = logging.getLogger("callboard.triggers")

TRIGGERS_FILE = "triggers.json"


def _new_trigger_id() -> str:
    return str(uuid.uuid4())


def _merge(trigger: "Trigger", updates: "dict[str, Any]") -> "Trigger":
    """Shallow-merge updates onto a trigger. The id is never overwritten."""
    from .models import Trigger

    merged = trigger.model_dump(by_alias=True)
    for key, value in updates.items():
        field = Trigger.model_fields.get(key)
        alias = field.alias if field is not None and field.alias else key
        if alias == "id":
            continue
        merged[alias] = value
    return Trigger.model_validate(merged)


class TriggerStore(ABC):
    """Persistence abstraction for per-agent Trigger collections."""

    @abstractmethod
    def _load(self, alias: str) -> "list[Trigger]": ...

    @abstractmethod
    def _save(self, alias: str, triggers: "list[Trigger]") -> None: ...

    def list(self, alias: str) -> "list[Trigger]":
        return self._load(alias)

    def get(self, alias: str, trigger_id: str) -> "Trigger | None":
        for trigger in self._load(alias):
            if trigger.id == trigger_id:
                return trigger
        return None

    def create(self, alias: str, trigger: "TriggerCreate | dict[str, Any]") -> "Trigger":
        from .models import Trigger, TriggerCreate

        if not isinstance(trigger, TriggerCreate):
            trigger = TriggerCreate.model_validate(trigger)
        new_trigger = Trigger(**trigger.model_dump(), id=_new_trigger_id())
        triggers = self._load(alias)
        triggers.append(new_trigger)
        self._save(alias, triggers)
        log.info("Created  agent=%s id=%s name=%s", alias, new_trigger.id, new_trigger.name)
        return new_trigger

    def update(self, alias: str, trigger_id: str, updates: "dict[str, Any]") -> "Trigger | None":
        triggers = self._load(alias)
        for index, trigger in enumerate(triggers):
            if trigger.id == trigger_id:
                triggers[index] = _merge(trigger, updates)
                self._save(alias, triggers)
                return triggers[index]
        return None

    def delete(self, alias: str, trigger_id: str) -> bool:
        triggers = self._load(alias)
        remaining = [t for t in triggers if t.id != trigger_id]
        if len(remaining) == len(triggers):
            return False
        self._save(alias, remaining)
        log.info("Deleted  agent=%s id=%s", alias, trigger_id)
        return True


class MemoryTriggerStore(TriggerStore):
    """In-memory store, no disk I/O. Use in tests."""

    def __init__(self) -> None:
        self._triggers: dict[str, "list[Trigger]"] = {}

    def _load(self, alias: str) -> "list[Trigger]":
        return list(self._triggers.get(alias, []))

    def _save(self, alias: str, triggers: "list[Trigger]") -> None:
        self._triggers[alias] = list(triggers)


class FileTriggerStore(TriggerStore):
    """File-based store. Reads/writes agents/{alias}/triggers.json."""

    def __init__(self, agents_dir: Path) -> None:
        self._agents_dir = agents_dir

    def _path(self, alias: str) -> Path:
        return self._agents_dir / alias / TRIGGERS_FILE

    def _load(self, alias: str) -> "list[Trigger]":
        from .models import Trigger

        path = self._path(alias)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.warning("Failed to load triggers  agent=%s error=%s", alias, e)
            return []
        if not isinstance(data, list):
            log.warning("Ignoring triggers file that is not a list  agent=%s", alias)
            return []

        triggers = []
        for entry in data:
            try:
                triggers.append(Trigger.model_validate(entry))
            except ValidationError as e:
                log.warning("Skipping invalid trigger  agent=%s error=%s", alias, e)
        return triggers

    def _save(self, alias: str, triggers: "list[Trigger]") -> None:
        path = self._path(alias)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([t.to_dict() for t in triggers], indent=2)
        # Atomic write via temp file
        tmp = path.with_suffix(".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)
