"""Core data types for the knowledge graph and its event log."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


def current_timestamp() -> int:
    """Return the current Unix time in whole seconds."""
    return int(time.time())


class EventStoreError(Exception):
    """Base error for event store operations."""


class InvalidEventError(EventStoreError):
    """An event could not be parsed or is malformed."""


class SnapshotCorruptedError(EventStoreError):
    """A snapshot file is empty or cannot be read."""


class EventType(str, Enum):
    """Kinds of mutation recorded in the event log."""

    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"
    OBSERVATION_ADDED = "observation_added"
    OBSERVATION_REMOVED = "observation_removed"
    RELATION_CREATED = "relation_created"
    RELATION_DELETED = "relation_deleted"


class EventSource(str, Enum):
    """Where an event originated."""

    MCP = "mcp"
    API = "api"
    MIGRATION = "migration"


def _require_mapping(data: Any, kind: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{kind} must be a JSON object")
    return data


def _require_str(data: dict[str, Any], key: str) -> str:
    if key not in data:
        raise ValueError(f"missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"field '{key}' must be a string")
    return value


def _optional_str(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"field '{key}' must be a string")
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_int(data: dict[str, Any], key: str) -> int:
    if key not in data:
        raise ValueError(f"missing field '{key}'")
    value = data[key]
    if not _is_int(value):
        raise ValueError(f"field '{key}' must be an integer")
    return value


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if not _is_int(value):
        raise ValueError(f"field '{key}' must be an integer")
    return value


@dataclass
class Entity:
    """A named node in the knowledge graph."""

    name: str
    entity_type: str
    observations: list[str] = field(default_factory=list)
    created_by: str = ""
    updated_by: str = ""
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entityType": self.entity_type,
            "observations": list(self.observations),
            "createdBy": self.created_by,
            "updatedBy": self.updated_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Entity:
        """Build an entity from its JSON object; raises ValueError if malformed."""
        data = _require_mapping(data, "entity")
        observations = data.get("observations") or []
        if not isinstance(observations, list) or not all(
            isinstance(o, str) for o in observations
        ):
            raise ValueError("field 'observations' must be a list of strings")
        return cls(
            name=_require_str(data, "name"),
            entity_type=_require_str(data, "entityType"),
            observations=list(observations),
            created_by=_optional_str(data, "createdBy"),
            updated_by=_optional_str(data, "updatedBy"),
            created_at=_optional_int(data, "createdAt") or 0,
            updated_at=_optional_int(data, "updatedAt") or 0,
        )


@dataclass
class Relation:
    """A directed, typed edge between two entities."""

    from_: str
    to: str
    relation_type: str
    created_by: str = ""
    created_at: int = 0
    valid_from: int | None = None
    valid_to: int | None = None

    def key(self) -> tuple[str, str, str]:
        """Identity of the relation: (from, to, type)."""
        return (self.from_, self.to, self.relation_type)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "from": self.from_,
            "to": self.to,
            "relationType": self.relation_type,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
        }
        if self.valid_from is not None:
            result["validFrom"] = self.valid_from
        if self.valid_to is not None:
            result["validTo"] = self.valid_to
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Relation:
        """Build a relation from its JSON object; raises ValueError if malformed."""
        data = _require_mapping(data, "relation")
        return cls(
            from_=_require_str(data, "from"),
            to=_require_str(data, "to"),
            relation_type=_require_str(data, "relationType"),
            created_by=_optional_str(data, "createdBy"),
            created_at=_optional_int(data, "createdAt") or 0,
            valid_from=_optional_int(data, "validFrom"),
            valid_to=_optional_int(data, "validTo"),
        )


@dataclass
class Observation:
    """Observations to add to a named entity."""

    entity_name: str
    contents: list[str] = field(default_factory=list)


@dataclass
class ObservationDeletion:
    """Observations to remove from a named entity."""

    entity_name: str
    observations: list[str] = field(default_factory=list)


@dataclass
class KnowledgeGraph:
    """A set of entities and the relations between them."""

    entities: list[Entity] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "relations": [r.to_dict() for r in self.relations],
        }


@dataclass
class Event:
    """An immutable record of one mutation."""

    event_id: int
    event_type: EventType
    timestamp: int
    user: str
    data: dict[str, Any] = field(default_factory=dict)
    agent: str | None = None
    source: EventSource = EventSource.MCP

    @classmethod
    def create(
        cls, event_type: EventType, event_id: int, user: str, data: dict[str, Any]
    ) -> Event:
        """Create an event stamped with the current time."""
        return cls(
            event_id=event_id,
            event_type=EventType(event_type),
            timestamp=current_timestamp(),
            user=user,
            data=data,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "eventId": self.event_id,
            "eventType": self.event_type.value,
            "timestamp": self.timestamp,
            "user": self.user,
        }
        if self.agent is not None:
            result["agent"] = self.agent
        result["source"] = self.source.value
        result["data"] = self.data
        return result

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> Event:
        """Parse one log line; raises InvalidEventError if it is not a valid event."""
        try:
            data = _require_mapping(json.loads(line), "event")
            event_type = EventType(_require_str(data, "eventType"))
            source = EventSource(_optional_str(data, "source", EventSource.MCP.value))
            agent = data.get("agent")
            if agent is not None and not isinstance(agent, str):
                raise ValueError("field 'agent' must be a string")
            payload = data.get("data", {})
            return cls(
                event_id=_require_int(data, "eventId"),
                event_type=event_type,
                timestamp=_require_int(data, "timestamp"),
                user=_optional_str(data, "user"),
                data=payload,
                agent=agent,
                source=source,
            )
        except (ValueError, TypeError) as exc:
            raise InvalidEventError(str(exc)) from exc


@dataclass
class SnapshotMeta:
    """Header line of a snapshot file."""

    last_event_id: int
    entity_count: int
    relation_count: int
    created_at: int = 0
    version: int = 1

    @classmethod
    def create(
        cls, last_event_id: int, entity_count: int, relation_count: int
    ) -> SnapshotMeta:
        return cls(
            last_event_id=last_event_id,
            entity_count=entity_count,
            relation_count=relation_count,
            created_at=current_timestamp(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastEventId": self.last_event_id,
            "entityCount": self.entity_count,
            "relationCount": self.relation_count,
            "createdAt": self.created_at,
            "version": self.version,
        }

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> SnapshotMeta:
        """Parse a snapshot header; raises SnapshotCorruptedError if malformed."""
        try:
            data = _require_mapping(json.loads(line), "snapshot metadata")
            return cls(
                last_event_id=_require_int(data, "lastEventId"),
                entity_count=_require_int(data, "entityCount"),
                relation_count=_require_int(data, "relationCount"),
                created_at=_optional_int(data, "createdAt") or 0,
                version=_optional_int(data, "version") or 1,
            )
        except (ValueError, TypeError) as exc:
            raise SnapshotCorruptedError(f"invalid metadata: {exc}") from exc


@dataclass
class EntityBrief:
    name: str
    entity_type: str
    brief: str


@dataclass
class Summary:
    total_entities: int = 0
    entities: list[EntityBrief] | None = None
    by_status: dict[str, int] | None = None
    by_type: dict[str, int] | None = None
    by_priority: dict[str, int] | None = None


@dataclass
class PathStep:
    """One hop of a traversal pattern; direction is "out" or "in"."""

    relation_type: str
    direction: str = "out"
    target_type: str | None = None


@dataclass
class RelatedEntity:
    relation_type: str
    direction: str
    entity: Entity


@dataclass
class RelatedEntities:
    entity: str
    relations: list[RelatedEntity] = field(default_factory=list)


@dataclass
class TraversalPath:
    nodes: list[str] = field(default_factory=list)
    relations: list[str] = field(default_factory=list)


@dataclass
class TraversalResult:
    start_node: str
    paths: list[TraversalPath] = field(default_factory=list)
    end_nodes: list[Entity] = field(default_factory=list)


@dataclass
class InferredRelation:
    relation: Relation
    confidence: float
    rule_name: str
    explanation: str


@dataclass
class InferStats:
    nodes_visited: int = 0
    paths_found: int = 0
    max_depth_reached: int = 0
    execution_time_ms: int = 0


@dataclass
class EventStoreConfig:
    """Locations and policies of an event store on disk."""

    data_dir: Path = field(default_factory=lambda: Path("data"))
    snapshot_threshold: int = 1000
    archive_old_events: bool = True
    compress_archive: bool = False

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)

    def events_path(self) -> Path:
        return self.data_dir / "events.jsonl"

    def snapshots_dir(self) -> Path:
        return self.data_dir / "snapshots"

    def latest_snapshot_path(self) -> Path:
        return self.snapshots_dir() / "latest.jsonl"

    def previous_snapshot_path(self) -> Path:
        return self.snapshots_dir() / "previous.jsonl"

    def archive_dir(self) -> Path:
        return self.data_dir / "archive"