"""
Trigger filter matching.

All specified filter parts must match (AND logic). Unspecified or empty
source/eventType match any event. Evaluation never raises: a missing data
field, a non-string value, or an invalid regex simply fails the condition.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from .models import FilterCondition, StoredEvent, TriggerFilter


def get_nested_value(obj: Any, path: str) -> Any:
    """
    Resolve a dot-notation path against a JSON value. Returns None when
    any segment is missing or a non-container is reached.

    e.g. get_nested_value({"author": {"username": "bob"}}, "author.username") -> "bob"
    """
    current = obj
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isascii() and part.isdecimal() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
    return current


def stringify(value: Any) -> str:
    """Text form of a JSON value, as used for comparisons and prompts."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def _compile(pattern: str) -> "re.Pattern[str] | None":
    # Oversized repeats raise OverflowError, deep nesting RecursionError
    try:
        return re.compile(pattern)
    except (re.error, OverflowError, RecursionError):
        return None


def evaluate_condition(data: Any, condition: "FilterCondition") -> bool:
    value = get_nested_value(data, condition.field)
    op = condition.operator

    if op == "exists":
        return value is not None
    if op == "not_exists":
        return value is None
    if op == "equals":
        return value is not None and stringify(value) == condition.value
    if op == "contains":
        return isinstance(value, str) and condition.value is not None and condition.value in value
    if op == "matches":
        if not isinstance(value, str) or not condition.value:
            return False
        pattern = _compile(condition.value)
        return pattern is not None and pattern.search(value) is not None
    return False


def matches_filter(event: "StoredEvent", filter: "TriggerFilter") -> bool:
    """Check whether a stored event matches a trigger filter."""
    if filter.source and filter.source != event.source:
        return False
    if filter.event_type and filter.event_type != event.event_type:
        return False
    for condition in filter.conditions:
        if not evaluate_condition(event.data, condition):
            return False
    return True


def backtest_filter(events: "Iterable[StoredEvent]", filter: "TriggerFilter") -> "list[StoredEvent]":
    """The subsequence of events a filter would have matched, in order."""
    return [e for e in events if matches_filter(e, filter)]
