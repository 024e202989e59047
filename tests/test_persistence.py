from memgraph.models import EventStoreConfig, EventType, KnowledgeGraph
from memgraph.persistence import EventSourcing


def _entity_data(name):
    return {"name": name, "entity_type": "Test", "observations": []}


def test_initialize_empty(tmp_path):
    es = EventSourcing(EventStoreConfig(tmp_path / "data"))
    graph = es.initialize()
    assert graph.entities == []
    assert graph.relations == []


def test_emit_event_ids_increase(tmp_path):
    es = EventSourcing(EventStoreConfig(tmp_path / "data"))
    first = es.emit_event(EventType.ENTITY_CREATED, "user", _entity_data("A"))
    second = es.emit_event(EventType.ENTITY_CREATED, "user", _entity_data("B"))
    assert (first, second) == (1, 2)


def test_events_replayed_by_new_instance(tmp_path):
    config = EventStoreConfig(tmp_path / "data")
    es = EventSourcing(config)
    es.emit_event(EventType.ENTITY_CREATED, "user", _entity_data("A"))
    es.emit_event(EventType.ENTITY_CREATED, "user", _entity_data("B"))
    es.emit_event(
        EventType.RELATION_CREATED, "user", {"from": "A", "to": "B", "relation_type": "knows"}
    )
    graph = EventSourcing(config).initialize()
    assert [e.name for e in graph.entities] == ["A", "B"]
    assert [r.key() for r in graph.relations] == [("A", "B", "knows")]


def test_maybe_snapshot_respects_threshold_and_rotates(tmp_path):
    config = EventStoreConfig(tmp_path / "data", snapshot_threshold=2)
    es = EventSourcing(config)
    es.emit_event(EventType.ENTITY_CREATED, "user", _entity_data("A"))
    graph = es.initialize() if False else KnowledgeGraph()
    assert es.maybe_snapshot(graph) is None
    es.emit_event(EventType.ENTITY_CREATED, "user", _entity_data("B"))
    meta = es.maybe_snapshot(graph)
    assert meta.last_event_id == 2
    assert config.latest_snapshot_path().exists()
    assert config.events_path().read_text() == ""
    assert len(es.rotation.list_archives()) == 1
    assert es.store.events_since_snapshot == 0


def test_force_snapshot_without_events(tmp_path):
    es = EventSourcing(EventStoreConfig(tmp_path / "data"))
    assert es.force_snapshot(KnowledgeGraph()) is None


def test_force_snapshot_then_rotate(tmp_path):
    config = EventStoreConfig(tmp_path / "data")
    es = EventSourcing(config)
    assert es.rotate_log() is None
    es.emit_event(EventType.ENTITY_CREATED, "user", _entity_data("A"))
    graph = EventSourcing(config).initialize()
    path = es.force_snapshot(graph)
    assert path == config.latest_snapshot_path()
    assert es.snapshots.load_meta().entity_count == 1
    archive = es.rotate_log()
    assert archive.exists()
    assert config.events_path().read_text() == ""


def test_stats_and_cleanup(tmp_path):
    config = EventStoreConfig(tmp_path / "data")
    es = EventSourcing(config)
    for name in ("A", "B", "C"):
        es.emit_event(EventType.ENTITY_CREATED, "user", _entity_data(name))
    stats = es.stats()
    assert stats.active_event_count == 3
    assert stats.last_event_id == 3
    assert stats.events_by_type[EventType.ENTITY_CREATED] == 3
    archive_dir = config.archive_dir()
    archive_dir.mkdir(parents=True)
    for name in ("events_1_to_2.jsonl", "events_3_to_4.jsonl"):
        (archive_dir / name).write_text("{}\n")
    assert es.cleanup_archives(1) == 1
    assert [a.path.name for a in es.rotation.list_archives()] == ["events_3_to_4.jsonl"]