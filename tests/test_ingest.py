"""Tests for EventIngestor and EventWatcher."""

import pytest

from callboard.core.executor import MockExecutor
from callboard.core.models import AgentConfig, TriggerCreate, TriggerFilter
from callboard.service.dispatcher import TriggerDispatcher
from callboard.service.ingest import EventIngestor
from callboard.service.watcher import EventSource, EventWatcher


@pytest.fixture
def executor():
    return MockExecutor()


@pytest.fixture
def ingestor(event_store, memory_triggers, executor):
    memory_triggers.create("alpha", TriggerCreate(name="pushes", filter=TriggerFilter(event_type="push")))
    dispatcher = TriggerDispatcher(
        list_agents=lambda: [AgentConfig(alias="alpha", name="Alpha")],
        triggers=memory_triggers,
        executor=executor,
    )
    return EventIngestor(store=event_store, dispatcher=dispatcher)


class FakeSource(EventSource):
    name = "fake"

    def __init__(self, events=None, fail_status=False, fail_connections=()):
        self.events = events or {}
        self.fail_status = fail_status
        self.fail_connections = set(fail_connections)
        self.polls = []

    async def ingestor_status(self):
        if self.fail_status:
            raise ConnectionError("proxy down")
        return list(self.events)

    async def poll_events(self, connection, after_id):
        self.polls.append((connection, after_id))
        if connection in self.fail_connections:
            raise ConnectionError(f"{connection} unavailable")
        return [e for e in self.events[connection] if e["id"] > after_id]


@pytest.mark.asyncio
async def test_ingest_stores_and_dispatches_once(ingestor, executor, make_event):
    raw = make_event(idempotencyKey="delivery-1")
    assert ingestor.ingest(raw) is not None
    assert ingestor.ingest(raw) is None
    await ingestor.dispatcher.drain()
    assert len(executor.requests) == 1


@pytest.mark.asyncio
async def test_append_event_does_not_dispatch(ingestor, executor, make_event):
    assert ingestor.append_event(make_event()) is not None
    await ingestor.dispatcher.drain()
    assert executor.requests == []


def test_dispatch_event_never_raises(event_store, make_stored):
    class Exploding:
        def dispatch(self, event):
            raise RuntimeError("rule engine bug")

    EventIngestor(store=event_store, dispatcher=Exploding()).dispatch_event(make_stored())


@pytest.mark.asyncio
async def test_watcher_polls_each_connection_with_own_cursor(ingestor, make_event, event_store):
    source = FakeSource(events={
        "github": [make_event(source="github", id=1), make_event(source="github", id=2)],
        "slack": [make_event(source="slack", event_type="message", id=100)],
    })
    watcher = EventWatcher(source=source, ingestor=ingestor, poll_interval=0.01)

    assert await watcher.poll_once() == 3
    assert watcher.cursors == {"github": 2, "slack": 100}
    assert ("github", -1) in source.polls and ("slack", -1) in source.polls

    source.polls.clear()
    assert await watcher.poll_once() == 0
    assert ("github", 2) in source.polls and ("slack", 100) in source.polls
    assert len(event_store.query_all()) == 3
    await ingestor.dispatcher.drain()


@pytest.mark.asyncio
async def test_watcher_replay_is_deduplicated(ingestor, make_event, executor):
    events = {"github": [make_event(source="github", id=1, idempotencyKey="gh-1")]}
    first = EventWatcher(source=FakeSource(events=events), ingestor=ingestor)
    assert await first.poll_once() == 1

    # New watcher, cursor reset: the same event comes back
    second = EventWatcher(source=FakeSource(events=events), ingestor=ingestor)
    assert await second.poll_once() == 0
    await ingestor.dispatcher.drain()
    assert len(executor.requests) == 1


@pytest.mark.asyncio
async def test_watcher_unwraps_events_dict(ingestor, make_event):
    class WrappedSource(FakeSource):
        async def poll_events(self, connection, after_id):
            return {"events": await super().poll_events(connection, after_id)}

    watcher = EventWatcher(source=WrappedSource(events={"github": [make_event(id=5)]}), ingestor=ingestor)
    assert await watcher.poll_once() == 1
    assert watcher.cursors["github"] == 5
    await ingestor.dispatcher.drain()


@pytest.mark.asyncio
async def test_watcher_connection_failure_is_isolated(ingestor, make_event):
    source = FakeSource(
        events={"github": [make_event(id=1)], "slack": [make_event(source="slack", id=1)]},
        fail_connections={"slack"},
    )
    watcher = EventWatcher(source=source, ingestor=ingestor, poll_interval=1.0)
    assert await watcher.poll_once() == 1
    assert watcher.consecutive_failures == 0
    assert "slack" not in watcher.cursors
    await ingestor.dispatcher.drain()


@pytest.mark.asyncio
async def test_watcher_backoff_grows_and_resets(ingestor):
    source = FakeSource(fail_status=True)
    watcher = EventWatcher(source=source, ingestor=ingestor, poll_interval=1.0, max_backoff=5.0)

    await watcher.poll_once()
    assert watcher.current_backoff == 2.0
    await watcher.poll_once()
    assert watcher.current_backoff == 4.0
    await watcher.poll_once()
    assert watcher.current_backoff == 5.0
    assert watcher.consecutive_failures == 3

    source.fail_status = False
    await watcher.poll_once()
    assert watcher.current_backoff == 1.0
    assert watcher.consecutive_failures == 0


@pytest.mark.asyncio
async def test_watcher_start_stop(ingestor):
    watcher = EventWatcher(source=FakeSource(), ingestor=ingestor, poll_interval=0.01)
    watcher.start()
    assert watcher.running
    await watcher.stop()
    assert not watcher.running
