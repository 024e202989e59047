"""Thread-safe knowledge base with file or event-sourced persistence."""

from __future__ import annotations

import copy
import getpass
import logging
import os
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .graph_file import load_graph_file, save_graph_file
from .models import (
    Entity,
    EventStoreConfig,
    EventStoreError,
    EventType,
    KnowledgeGraph,
    Observation,
    ObservationDeletion,
    PathStep,
    RelatedEntities,
    Relation,
    Summary,
    TraversalResult,
    current_timestamp,
)
from .persistence import EventSourcing
from .queries import open_nodes, read_graph, relation_history, relations_at_time
from .stats import EventStoreStats
from .summarize import summarize
from .traversal import get_related, traverse

logger = logging.getLogger(__name__)

_SYSTEM_USER = "system"


def _detect_user() -> str:
    try:
        return getpass.getuser() or _SYSTEM_USER
    except (KeyError, OSError):
        return _SYSTEM_USER


def _env_flag(name: str) -> bool:
    return os.environ.get(name) in ("true", "1")


class KnowledgeBase:
    """An in-memory graph guarded by a lock and persisted after every mutation."""

    def __init__(
        self,
        file_path: str | Path,
        user: str | None = None,
        *,
        event_sourcing: bool = False,
        data_dir: str | Path | None = None,
    ) -> None:
        self.file_path = Path(file_path)
        self.current_user = user if user is not None else _detect_user()
        self._lock = threading.RLock()
        self._events: EventSourcing | None = None

        if event_sourcing:
            directory = Path(data_dir) if data_dir is not None else self.file_path.parent / "data"
            self._events = EventSourcing(EventStoreConfig(directory))
            try:
                self._graph = self._events.initialize()
            except (EventStoreError, OSError, ValueError) as exc:
                logger.warning("Failed to initialize from event store: %s", exc)
                logger.warning("Falling back to empty graph")
                self._graph = KnowledgeGraph()
            logger.info(
                "Event Sourcing enabled: %d entities, %d relations",
                len(self._graph.entities),
                len(self._graph.relations),
            )
        else:
            try:
                self._graph = load_graph_file(self.file_path)
            except OSError:
                self._graph = KnowledgeGraph()

    @classmethod
    def from_environment(
        cls, file_path: str | Path | None = None, user: str | None = None
    ) -> KnowledgeBase:
        """Configure from MEMORY_FILE_PATH and MEMORY_EVENT_SOURCING."""
        if file_path is None:
            cwd = Path.cwd()
            env_path = os.environ.get("MEMORY_FILE_PATH")
            if env_path is None:
                file_path = cwd / "memory.jsonl"
            else:
                candidate = Path(env_path)
                file_path = candidate if candidate.is_absolute() else cwd / candidate
        return cls(file_path, user, event_sourcing=_env_flag("MEMORY_EVENT_SOURCING"))

    @property
    def event_sourcing_enabled(self) -> bool:
        return self._events is not None

    def graph_copy(self) -> KnowledgeGraph:
        """An independent copy of the current graph."""
        with self._lock:
            return copy.deepcopy(self._graph)

    @contextmanager
    def _mutating(self) -> Iterator[KnowledgeGraph]:
        with self._lock:
            yield self._graph
            if self._events is None:
                save_graph_file(self.file_path, self._graph)
            else:
                self._events.maybe_snapshot(self._graph)

    def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._events is not None:
            self._events.emit_event(event_type, self.current_user, data)

    def create_entities(self, entities: Sequence[Entity]) -> list[Entity]:
        """Add entities whose names are new; return the ones added."""
        created: list[Entity] = []
        with self._mutating() as graph:
            existing = {e.name for e in graph.entities}
            now = current_timestamp()
            for incoming in entities:
                if incoming.name in existing:
                    continue
                entity = copy.deepcopy(incoming)
                if entity.created_by in ("", _SYSTEM_USER):
                    entity.created_by = self.current_user
                if entity.updated_by in ("", _SYSTEM_USER):
                    entity.updated_by = self.current_user
                entity.created_at = now
                entity.updated_at = now
                self._emit(
                    EventType.ENTITY_CREATED,
                    {
                        "name": entity.name,
                        "entity_type": entity.entity_type,
                        "observations": list(entity.observations),
                    },
                )
                created.append(copy.deepcopy(entity))
                graph.entities.append(entity)
        return created

    def create_relations(self, relations: Sequence[Relation]) -> list[Relation]:
        """Add new relations between existing entities; return the ones added."""
        created: list[Relation] = []
        with self._mutating() as graph:
            names = {e.name for e in graph.entities}
            existing = {r.key() for r in graph.relations}
            now = current_timestamp()
            for incoming in relations:
                if incoming.from_ not in names or incoming.to not in names:
                    continue
                if incoming.key() in existing:
                    continue
                relation = copy.deepcopy(incoming)
                if relation.created_by in ("", _SYSTEM_USER):
                    relation.created_by = self.current_user
                relation.created_at = now
                self._emit(
                    EventType.RELATION_CREATED,
                    {
                        "from": relation.from_,
                        "to": relation.to,
                        "relation_type": relation.relation_type,
                        "valid_from": relation.valid_from,
                        "valid_to": relation.valid_to,
                    },
                )
                created.append(copy.deepcopy(relation))
                graph.relations.append(relation)
        return created

    def add_observations(self, observations: Sequence[Observation]) -> list[Observation]:
        """Append new observation texts to entities; return what was added."""
        added: list[Observation] = []
        with self._mutating() as graph:
            now = current_timestamp()
            for obs in observations:
                entity = next((e for e in graph.entities if e.name == obs.entity_name), None)
                if entity is None:
                    continue
                existing = set(entity.observations)
                new_contents: list[str] = []
                for content in obs.contents:
                    if content in existing:
                        continue
                    self._emit(
                        EventType.OBSERVATION_ADDED,
                        {"entity": obs.entity_name, "observation": content},
                    )
                    entity.observations.append(content)
                    new_contents.append(content)
                if new_contents:
                    entity.updated_at = now
                    entity.updated_by = self.current_user
                    added.append(Observation(entity_name=obs.entity_name, contents=new_contents))
        return added

    def delete_entities(self, entity_names: Sequence[str]) -> None:
        """Remove entities and every relation touching them."""
        with self._mutating() as graph:
            present = {e.name for e in graph.entities}
            for name in entity_names:
                if name in present:
                    self._emit(EventType.ENTITY_DELETED, {"name": name})
            doomed = set(entity_names)
            graph.entities[:] = [e for e in graph.entities if e.name not in doomed]
            graph.relations[:] = [
                r for r in graph.relations if r.from_ not in doomed and r.to not in doomed
            ]

    def delete_observations(self, deletions: Sequence[ObservationDeletion]) -> None:
        """Remove the given observation texts from their entities."""
        with self._mutating() as graph:
            for deletion in deletions:
                entity = next(
                    (e for e in graph.entities if e.name == deletion.entity_name), None
                )
                if entity is None:
                    continue
                for obs in deletion.observations:
                    if obs in entity.observations:
                        self._emit(
                            EventType.OBSERVATION_REMOVED,
                            {"entity": deletion.entity_name, "observation": obs},
                        )
                to_remove = set(deletion.observations)
                entity.observations = [o for o in entity.observations if o not in to_remove]

    def delete_relations(self, relations: Sequence[Relation]) -> None:
        """Remove relations matching (from, to, type)."""
        with self._mutating() as graph:
            existing = {r.key() for r in graph.relations}
            for relation in relations:
                if relation.key() in existing:
                    self._emit(
                        EventType.RELATION_DELETED,
                        {
                            "from": relation.from_,
                            "to": relation.to,
                            "relation_type": relation.relation_type,
                        },
                    )
            doomed = {r.key() for r in relations}
            graph.relations[:] = [r for r in graph.relations if r.key() not in doomed]

    def read_graph(self, limit: int | None = None, offset: int | None = None) -> KnowledgeGraph:
        return read_graph(self.graph_copy(), limit, offset)

    def open_nodes(self, names: Sequence[str]) -> KnowledgeGraph:
        return open_nodes(self.graph_copy(), list(names))

    def get_related(
        self, entity_name: str, relation_type: str | None = None, direction: str = "both"
    ) -> RelatedEntities:
        return get_related(self.graph_copy(), entity_name, relation_type, direction)

    def traverse(
        self, start: str, path: Sequence[PathStep], max_results: int
    ) -> TraversalResult:
        return traverse(self.graph_copy(), start, path, max_results)

    def summarize(
        self,
        entity_names: Sequence[str] | None = None,
        entity_type: str | None = None,
        fmt: str = "brief",
    ) -> Summary:
        names = list(entity_names) if entity_names is not None else None
        return summarize(self.graph_copy(), names, entity_type, fmt)

    def get_relations_at_time(
        self, timestamp: int | None = None, entity_name: str | None = None
    ) -> list[Relation]:
        return relations_at_time(self.graph_copy(), timestamp, entity_name)

    def get_relation_history(self, entity_name: str) -> list[Relation]:
        return relation_history(self.graph_copy(), entity_name)

    def create_snapshot(self) -> Path | None:
        """Force a snapshot; None without event sourcing or when no event exists."""
        if self._events is None:
            return None
        with self._lock:
            return self._events.force_snapshot(self._graph)

    def get_stats(self) -> EventStoreStats | None:
        if self._events is None:
            return None
        return self._events.stats()

    def rotate_event_log(self) -> Path | None:
        if self._events is None:
            return None
        return self._events.rotate_log()

    def cleanup_archives(self, keep_count: int) -> int:
        if self._events is None:
            return 0
        return self._events.cleanup_archives(keep_count)