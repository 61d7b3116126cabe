"""
Shared pytest fixtures for Callboard tests.
"""

import itertools

import pytest


@pytest.fixture
def tmp_config(tmp_path):
    """A Config instance using tmp_path as base_dir."""
    from callboard.config import Config
    return Config(base_dir=tmp_path)


@pytest.fixture
def event_store(tmp_config):
    """An EventStore writing under tmp_config.events_dir."""
    from callboard.core.event_log import EventStore
    return EventStore.from_config(tmp_config)


@pytest.fixture
def memory_triggers():
    from callboard.core.trigger_store import MemoryTriggerStore
    return MemoryTriggerStore()


@pytest.fixture
def make_event():
    """Factory for raw ingestor events with sequential ids."""
    counter = itertools.count(1)

    def _make(source="github", event_type="push", data=None, **kwargs):
        event_id = kwargs.pop("id", None) or next(counter)
        raw = {
            "id": event_id,
            "receivedAt": "2026-01-01T00:00:00+00:00",
            "source": source,
            "eventType": event_type,
            "data": data if data is not None else {},
        }
        raw.update(kwargs)
        return raw

    return _make


@pytest.fixture
def make_stored():
    """Factory for StoredEvent objects that never touch the disk."""
    from callboard.core.models import StoredEvent

    def _make(source="github", event_type="push", data=None, id=1, stored_at=0):
        return StoredEvent(
            id=id,
            idempotency_key=f"{source}:{id}",
            received_at="2026-01-01T00:00:00+00:00",
            received_at_ms=1767225600000,
            source=source,
            event_type=event_type,
            data=data if data is not None else {},
            stored_at=stored_at,
        )

    return _make


@pytest.fixture
def write_agent(tmp_config):
    """Factory creating agents/{alias}/agent.md under tmp_config."""

    def _write(alias, name=None, body="You watch events."):
        d = tmp_config.agents_dir / alias
        d.mkdir(parents=True, exist_ok=True)
        path = d / "agent.md"
        path.write_text(f"---\nname: {name or alias}\ndescription: test agent\n---\n\n{body}\n")
        return path

    return _write
