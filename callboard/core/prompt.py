"""
Prompt template interpolation.

Supported placeholders:
  {{event.source}}            connection alias
  {{event.eventType}}         event type string
  {{event.id}}                event id
  {{event.receivedAt}}        ISO-8601 timestamp
  {{event.data}}              full JSON payload, pretty-printed
  {{event.data.field.path}}   dot-notation into data

Unknown placeholders and missing fields render as an empty string.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from .filters import get_nested_value, stringify

if TYPE_CHECKING:
    from .models import StoredEvent

_PLACEHOLDER = re.compile(r"\{\{event\.([^}]+)\}\}")


def _pretty(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _resolve(path: str, event: "StoredEvent") -> str:
    if path == "source":
        return event.source
    if path == "eventType":
        return event.event_type
    if path == "receivedAt":
        return event.received_at
    if path == "id":
        return str(event.id)
    if path == "data":
        return _pretty(event.data)
    if path.startswith("data."):
        value = get_nested_value(event.data, path[len("data."):])
        return "" if value is None else stringify(value)
    return ""


def interpolate_prompt(template: str, event: "StoredEvent") -> str:
    """Render a trigger's prompt template against an event."""
    if not template:
        return (
            f"Event received: {event.source}:{event.event_type}\n\n"
            f"Payload:\n{_pretty(event.data)}"
        )
    return _PLACEHOLDER.sub(lambda m: _resolve(m.group(1), event), template)
