# memgraph

A knowledge graph of named entities and typed relations, kept in memory and
saved to disk after every change. There are two ways to save it:

* **Plain file**: after each change the whole graph is written to one
  JSON-lines file. All entities come first, then all relations.
* **Event sourcing**: each change is added to an append-only event log
  (`events.jsonl`). When enough events have built up (1000 by default), a
  snapshot is written and the events it covers are moved to an archive file.
  On startup the graph is rebuilt from the latest snapshot plus the events
  recorded after it.

The package also provides graph queries, traversal along relation paths,
time-based relation lookups, summaries, and an inference engine that finds
transitive relations.

## Installation

```
pip install .
```

The package uses only the standard library. To run the tests, install the
`test` extra:

```
pip install ".[test]"
pytest
```

## Quick start

```python
from memgraph.knowledge_base import KnowledgeBase
from memgraph.models import Entity, Relation, Observation

kb = KnowledgeBase.from_environment("memory.jsonl", "alice")

kb.create_entities([
    Entity(name="Module:Auth", entity_type="Module"),
    Entity(name="Bug:Login", entity_type="Bug", observations=["Status: open"]),
])
kb.create_relations([
    Relation(from_="Bug:Login", to="Module:Auth", relation_type="affects"),
])
kb.add_observations([
    Observation(entity_name="Bug:Login", contents=["Priority: high"]),
])

print(kb.read_graph(limit=10, offset=0))
print(kb.get_related("Bug:Login", None, "outgoing"))
print(kb.summarize(None, "Bug", "stats"))
```

`KnowledgeBase.from_environment(file_path, user)` works as follows:

* If `file_path` is `None`, it reads the `MEMORY_FILE_PATH` environment
  variable. A relative path is resolved against the current directory. If the
  variable is not set, it uses `memory.jsonl` in the current directory.
* If `MEMORY_EVENT_SOURCING` is `true` or `1`, it turns on event sourcing.
* If `user` is `None`, it uses the login name and falls back to `"system"`.

You can also construct the class directly:
`KnowledgeBase(file_path, user, event_sourcing=True, data_dir=...)`. When
`data_dir` is not given, the event store lives in a `data` directory next to
`file_path`.

## Changing the graph

* `create_entities(entities)` adds only entities whose names are new and
  returns the ones it added. It sets their timestamps. An empty or `"system"`
  `created_by`/`updated_by` is replaced with the current user.
* `create_relations(relations)` adds a relation only if both of its ends exist
  and the same (from, to, type) is not already stored.
* `add_observations(observations)` appends texts an entity does not have yet
  and returns what was added.
* `delete_entities(names)` removes the entities and every relation that
  touches them.
* `delete_observations(deletions)` removes the given texts from their
  entities.
* `delete_relations(relations)` removes relations that match on
  (from, to, type).

All of these methods hold one lock. `graph_copy()` returns an independent
deep copy of the current graph.

## Queries

Each of these is a method on `KnowledgeBase`. The same functions that work on
a plain `KnowledgeGraph` are in `memgraph.queries`, `memgraph.traversal` and
`memgraph.summarize`.

* `read_graph(limit, offset)` returns a page of entities and every relation
  that touches one of them.
* `open_nodes(names)` returns the named entities and the relations between
  them.
* `get_related(entity_name, relation_type, direction)` returns the direct
  neighbours of an entity. `direction` is `"outgoing"`, `"incoming"` or
  `"both"`.
* `traverse(start, path, max_results)` follows a list of `PathStep` values.
  Each step has a relation type, a direction (`"out"` or `"in"`) and an
  optional target entity type. After each step, at most `max_results` paths
  are kept.
* `get_relations_at_time(timestamp, entity_name)` returns the relations valid
  at `timestamp`, which defaults to now. Both `valid_from` and `valid_to` are
  inclusive, and a bound that is not set is open.
* `get_relation_history(entity_name)` returns every relation that touches an
  entity, including ones that have expired.
* `summarize(entity_names, entity_type, fmt)` gives a summary in one of three
  formats:
  * `"brief"`: the first observation of each entity, cut to 100 characters.
  * `"detailed"`: all observations of each entity, joined with `"; "`.
  * `"stats"`: counts by type, and by `Status:` and `Priority:`
    observations.

  Any other value of `fmt` gives a brief summary.

## Inference

```python
from memgraph.inference import InferenceEngine

engine = InferenceEngine.with_max_depth(3)
inferred, stats = engine.infer(kb.graph_copy(), "Bug:Login", 0.5)
for item in inferred:
    print(item.relation.to, item.confidence, item.explanation)
```

`TransitiveDependencyRule` searches outgoing relations breadth-first. It
stops at the maximum depth and never visits the same entity twice, so cycles
are safe.

* Confidence is multiplied at each hop by a factor that depends on the
  relation type (see `get_decay_factor`). A path is dropped once its
  confidence falls below the threshold.
* Each entity reached over two or more hops produces an `InferredRelation`.
  Its type is `inferred_<first relation type>`, and it comes with an
  explanation of the path.

To add your own rules, subclass `InferenceRule` and pass the rule to
`register_rule`.

## Event store tools

These classes work on an event store data directory, which is described by
`memgraph.models.EventStoreConfig`:

* `memgraph.store.EventStore` appends events, loads them and replays them
  into entities and relations.
* `memgraph.snapshot.SnapshotManager` writes snapshots, keeping the previous
  one as a backup. It also loads snapshots and recovers from the backup.
* `memgraph.rotation.LogRotation` moves snapshotted events into
  `archive/events_<first>_to_<last>.jsonl`, lists archives, and deletes all
  but the newest N.
* `memgraph.stats.StatsCollector` reports event counts, sizes and events by
  type, and measures replay speed. `format_size` turns a byte count into
  readable text.
* `memgraph.migration.MigrationTool` converts a plain `memory.jsonl` graph
  file into an event log with a first snapshot. It keeps a
  `.jsonl.migrated` copy of the original file.
* `memgraph.persistence.EventSourcing` combines the store, snapshots and
  rotation for the knowledge base.

A knowledge base that uses event sourcing also offers `create_snapshot()`,
`get_stats()`, `rotate_event_log()` and `cleanup_archives(keep_count)`.
Without event sourcing these return `None`, or `0` for `cleanup_archives`.

Progress messages and warnings go to the standard `logging` module.

## What this package does not do

This package is a library only:

* It has no command-line program.
* It has no protocol server or HTTP/WebSocket API, and it does not broadcast
  changes to clients.
* It has no keyword or synonym search over entities.
* Archived event files are not compressed.