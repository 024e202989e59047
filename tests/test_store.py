import pytest

from memgraph.models import (
    Entity,
    Event,
    EventStoreConfig,
    EventType,
    InvalidEventError,
    Relation,
    SnapshotCorruptedError,
    SnapshotMeta,
)
from memgraph.store import EventStore


@pytest.fixture
def store(tmp_path):
    config = EventStoreConfig(tmp_path)
    config.snapshots_dir().mkdir(parents=True)
    return EventStore(config)


def test_append_and_load_events(store):
    event1 = store.create_and_append_event(
        EventType.ENTITY_CREATED,
        "test_user",
        {"name": "Test:Entity", "entity_type": "Test", "observations": ["obs1"]},
    )
    event2 = store.create_and_append_event(
        EventType.OBSERVATION_ADDED,
        "test_user",
        {"entity": "Test:Entity", "observation": "obs2"},
    )

    assert event1.event_id == 1
    assert event2.event_id == 2
    assert store.next_event_id == 3
    assert store.events_since_snapshot == 2

    events = store.load_events()
    assert len(events) == 2
    assert events[0].event_type is EventType.ENTITY_CREATED
    assert events[1].event_type is EventType.OBSERVATION_ADDED


def test_load_events_after(store):
    for i in range(1, 6):
        store.create_and_append_event(
            EventType.ENTITY_CREATED, "user", {"name": f"Entity:{i}", "entity_type": "Test"}
        )

    events = store.load_events_after(3)
    assert [e.event_id for e in events] == [4, 5]


def test_load_events_skips_malformed_lines(store):
    store.create_and_append_event(EventType.ENTITY_CREATED, "user", {"name": "A", "entity_type": "T"})
    with store.config.events_path().open("a") as handle:
        handle.write("garbage\n\n")
    store.create_and_append_event(EventType.ENTITY_CREATED, "user", {"name": "B", "entity_type": "T"})

    assert [e.event_id for e in store.load_events()] == [1, 2]


def test_apply_entity_created():
    entities, relations = [], []
    event = Event.create(
        EventType.ENTITY_CREATED,
        1,
        "user",
        {"name": "Bug:Login", "entity_type": "Bug", "observations": ["Login fails"]},
    )
    EventStore.apply_event(entities, relations, event)

    assert len(entities) == 1
    assert entities[0].name == "Bug:Login"
    assert entities[0].entity_type == "Bug"
    assert entities[0].observations == ["Login fails"]
    assert entities[0].created_by == "user"


def test_apply_observation_added():
    entities = [Entity("Bug:X", "Bug")]
    event = Event.create(
        EventType.OBSERVATION_ADDED, 1, "user", {"entity": "Bug:X", "observation": "New observation"}
    )
    EventStore.apply_event(entities, [], event)
    assert entities[0].observations == ["New observation"]


def test_apply_observation_removed():
    entities = [Entity("Bug:X", "Bug", ["a", "b"])]
    event = Event.create(
        EventType.OBSERVATION_REMOVED, 1, "editor", {"entity": "Bug:X", "observation": "a"}
    )
    EventStore.apply_event(entities, [], event)
    assert entities[0].observations == ["b"]
    assert entities[0].updated_by == "editor"


def test_apply_entity_deleted():
    entities = [Entity("Bug:X", "Bug"), Entity("Bug:Y", "Bug")]
    relations = [
        Relation("Bug:X", "Module:A", "affects"),
        Relation("Bug:Y", "Module:B", "affects"),
    ]
    event = Event.create(EventType.ENTITY_DELETED, 1, "user", {"name": "Bug:X"})
    EventStore.apply_event(entities, relations, event)

    assert [e.name for e in entities] == ["Bug:Y"]
    assert len(relations) == 1
    assert relations[0].from_ == "Bug:Y"


def test_apply_entity_updated():
    entities = [Entity("A", "Old")]
    event = Event.create(EventType.ENTITY_UPDATED, 1, "editor", {"name": "A", "entity_type": "New"})
    EventStore.apply_event(entities, [], event)
    assert entities[0].entity_type == "New"
    assert entities[0].updated_by == "editor"


def test_apply_relation_created():
    relations = []
    event = Event.create(
        EventType.RELATION_CREATED,
        1,
        "user",
        {"from": "Bug:X", "to": "Module:Auth", "relation_type": "affects"},
    )
    EventStore.apply_event([], relations, event)

    assert len(relations) == 1
    assert relations[0].from_ == "Bug:X"
    assert relations[0].to == "Module:Auth"
    assert relations[0].relation_type == "affects"


def test_apply_relation_deleted():
    relations = [Relation("A", "B", "x"), Relation("A", "B", "y")]
    event = Event.create(
        EventType.RELATION_DELETED, 1, "user", {"from": "A", "to": "B", "relation_type": "x"}
    )
    EventStore.apply_event([], relations, event)
    assert [r.relation_type for r in relations] == ["y"]


def test_apply_event_missing_field_raises():
    event = Event.create(EventType.ENTITY_CREATED, 1, "user", {"entity_type": "Test"})
    with pytest.raises(InvalidEventError):
        EventStore.apply_event([], [], event)


def test_replay_all(store):
    store.create_and_append_event(EventType.ENTITY_CREATED, "user", {"name": "A", "entity_type": "Test"})
    store.create_and_append_event(EventType.ENTITY_CREATED, "user", {"name": "B", "entity_type": "Test"})
    store.create_and_append_event(
        EventType.RELATION_CREATED, "user", {"from": "A", "to": "B", "relation_type": "depends_on"}
    )

    entities, relations, max_id = store.replay_all()
    assert len(entities) == 2
    assert len(relations) == 1
    assert max_id == 3


def test_idempotent_entity_created():
    entities = []
    event = Event.create(EventType.ENTITY_CREATED, 1, "user", {"name": "A", "entity_type": "Test"})
    EventStore.apply_event(entities, [], event)
    EventStore.apply_event(entities, [], event)
    assert len(entities) == 1


def test_should_snapshot_threshold(tmp_path):
    store = EventStore(EventStoreConfig(tmp_path, snapshot_threshold=2))
    store.create_and_append_event(EventType.ENTITY_CREATED, "u", {"name": "A", "entity_type": "T"})
    assert store.should_snapshot() is False
    store.create_and_append_event(EventType.ENTITY_CREATED, "u", {"name": "B", "entity_type": "T"})
    assert store.should_snapshot() is True
    store.snapshot_created(2)
    assert store.should_snapshot() is False
    assert store.last_snapshot_event_id == 2


def test_initialize_without_snapshot(store):
    store.create_and_append_event(EventType.ENTITY_CREATED, "u", {"name": "A", "entity_type": "T"})
    store.create_and_append_event(EventType.ENTITY_CREATED, "u", {"name": "B", "entity_type": "T"})

    fresh = EventStore(store.config)
    entities, relations = fresh.initialize()
    assert [e.name for e in entities] == ["A", "B"]
    assert relations == []
    assert fresh.next_event_id == 3
    assert fresh.events_since_snapshot == 2


def test_initialize_with_snapshot(store):
    store.create_and_append_event(EventType.ENTITY_CREATED, "u", {"name": "A", "entity_type": "T"})
    store.create_and_append_event(EventType.ENTITY_CREATED, "u", {"name": "X", "entity_type": "T"})
    store.create_and_append_event(EventType.ENTITY_CREATED, "u", {"name": "B", "entity_type": "T"})

    import json

    lines = [SnapshotMeta.create(2, 1, 0).to_json_line(), json.dumps(Entity("A", "T").to_dict())]
    store.config.latest_snapshot_path().write_text("\n".join(lines) + "\n")

    fresh = EventStore(store.config)
    entities, _ = fresh.initialize()
    assert [e.name for e in entities] == ["A", "B"]
    assert fresh.last_snapshot_event_id == 2
    assert fresh.events_since_snapshot == 1


def test_load_snapshot_empty_file_raises(store):
    store.config.latest_snapshot_path().write_text("")
    with pytest.raises(SnapshotCorruptedError):
        store.load_snapshot()
    with pytest.raises(SnapshotCorruptedError):
        store.load_snapshot_meta()


def test_load_snapshot_missing_returns_none(store):
    assert store.load_snapshot() is None
    assert store.load_snapshot_meta() is None


def test_load_snapshot_meta(store):
    store.config.latest_snapshot_path().write_text(SnapshotMeta.create(7, 3, 4).to_json_line() + "\n")
    meta = store.load_snapshot_meta()
    assert (meta.last_event_id, meta.entity_count, meta.relation_count) == (7, 3, 4)