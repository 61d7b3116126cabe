"""Tests for TriggerStore implementations."""

import json

import pytest
from pydantic import ValidationError

from callboard.core.models import TriggerCreate, TriggerFilter
from callboard.core.trigger_store import FileTriggerStore, MemoryTriggerStore


def make_trigger(**kwargs) -> TriggerCreate:
    defaults = dict(
        name="On push",
        filter=TriggerFilter(source="github", event_type="push"),
    )
    defaults.update(kwargs)
    return TriggerCreate(**defaults)


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryTriggerStore()
    return FileTriggerStore(agents_dir=tmp_path / "agents")


def test_create_assigns_id(store):
    t = store.create("alpha", make_trigger())
    assert t.id
    assert t.status == "active"
    assert t.trigger_count == 0
    assert store.get("alpha", t.id) == t
    assert store.list("alpha") == [t]


def test_create_from_dict(store):
    t = store.create("alpha", {"name": "n", "filter": {"eventType": "push"}, "id": "ignored"})
    assert t.id != "ignored"
    assert t.filter.event_type == "push"


def test_list_is_per_agent(store):
    store.create("alpha", make_trigger())
    assert store.list("beta") == []


def test_update_cannot_change_id(store):
    t = store.create("alpha", make_trigger())
    updated = store.update("alpha", t.id, {"id": "hijacked", "name": "Renamed"})
    assert updated.id == t.id
    assert updated.name == "Renamed"
    assert store.get("alpha", "hijacked") is None
    assert store.get("alpha", t.id).name == "Renamed"


def test_update_accepts_both_spellings(store):
    t = store.create("alpha", make_trigger())
    store.update("alpha", t.id, {"trigger_count": 3})
    store.update("alpha", t.id, {"lastTriggered": 1234})
    got = store.get("alpha", t.id)
    assert got.trigger_count == 3
    assert got.last_triggered == 1234


def test_update_is_shallow(store):
    t = store.create("alpha", make_trigger())
    updated = store.update("alpha", t.id, {"filter": {"source": "slack"}})
    assert updated.filter.source == "slack"
    assert updated.filter.event_type is None


def test_update_missing(store):
    assert store.update("alpha", "nope", {"name": "x"}) is None


def test_update_invalid_raises(store):
    t = store.create("alpha", make_trigger())
    with pytest.raises(ValidationError):
        store.update("alpha", t.id, {"status": "exploded"})
    assert store.get("alpha", t.id).status == "active"


def test_delete(store):
    a = store.create("alpha", make_trigger(name="a"))
    b = store.create("alpha", make_trigger(name="b"))
    assert store.delete("alpha", "nope") is False
    assert store.list("alpha") == [a, b]
    assert store.delete("alpha", a.id) is True
    assert store.list("alpha") == [b]


def test_file_layout_is_camel_case_json_array(tmp_path):
    store = FileTriggerStore(agents_dir=tmp_path / "agents")
    t = store.create("alpha", make_trigger())
    data = json.loads((tmp_path / "agents" / "alpha" / "triggers.json").read_text())
    assert isinstance(data, list)
    assert data[0]["id"] == t.id
    assert data[0]["triggerCount"] == 0
    assert data[0]["filter"]["eventType"] == "push"


@pytest.mark.parametrize("content", ["{broken", '{"not": "a list"}'])
def test_corrupt_file_lists_empty(tmp_path, content):
    path = tmp_path / "agents" / "alpha" / "triggers.json"
    path.parent.mkdir(parents=True)
    path.write_text(content)
    store = FileTriggerStore(agents_dir=tmp_path / "agents")
    assert store.list("alpha") == []


def test_invalid_entry_skipped(tmp_path):
    store = FileTriggerStore(agents_dir=tmp_path / "agents")
    good = store.create("alpha", make_trigger())
    path = tmp_path / "agents" / "alpha" / "triggers.json"
    data = json.loads(path.read_text())
    data.append({"name": "no id or filter"})
    path.write_text(json.dumps(data))
    assert store.list("alpha") == [good]
