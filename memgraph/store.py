"""Append-only event log and replay of events into graph state."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from .models import (
    Entity,
    Event,
    EventStoreConfig,
    EventStoreError,
    EventType,
    InvalidEventError,
    Relation,
    SnapshotCorruptedError,
    SnapshotMeta,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def _payload(event: Event) -> dict[str, Any]:
    if not isinstance(event.data, dict):
        raise InvalidEventError(f"event {event.event_id}: data must be a JSON object")
    return event.data


def _str_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key, _MISSING)
    if value is _MISSING:
        raise InvalidEventError(f"missing field '{key}'")
    if not isinstance(value, str):
        raise InvalidEventError(f"field '{key}' must be a string")
    return value


def _opt_str_field(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidEventError(f"field '{key}' must be a string")
    return value


def _opt_int_field(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidEventError(f"field '{key}' must be an integer")
    return value


def _str_list_field(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidEventError(f"field '{key}' must be a list of strings")
    return list(value)


def _find_entity(entities: list[Entity], name: str) -> Entity | None:
    return next((e for e in entities if e.name == name), None)


def _touch(entity: Entity, event: Event) -> None:
    entity.updated_by = event.user
    entity.updated_at = event.timestamp


class EventStore:
    """Manages the append-only event log and rebuilds state from it."""

    def __init__(self, config: EventStoreConfig | None = None) -> None:
        self.config = config if config is not None else EventStoreConfig()
        self.next_event_id = 1
        self.events_since_snapshot = 0
        self.last_snapshot_event_id = 0

    def should_snapshot(self) -> bool:
        return self.events_since_snapshot >= self.config.snapshot_threshold

    def append_event(self, event: Event) -> int:
        """Append an event durably and return its id."""
        events_path = self.config.events_path()
        events_path.parent.mkdir(parents=True, exist_ok=True)
        with events_path.open("a", encoding="utf-8") as handle:
            handle.write(event.to_json_line() + "\n")
            handle.flush()
            os.fsync(handle.fileno())

        if event.event_id >= self.next_event_id:
            self.next_event_id = event.event_id + 1
        self.events_since_snapshot += 1
        return event.event_id

    def create_and_append_event(
        self, event_type: EventType, user: str, data: dict[str, Any]
    ) -> Event:
        """Create an event with the next id and append it."""
        event_id = self.next_event_id
        self.next_event_id += 1
        event = Event.create(event_type, event_id, user, data)
        self.append_event(event)
        return event

    def load_events(self) -> list[Event]:
        """Load every parseable event; malformed lines are skipped with a warning."""
        events_path = self.config.events_path()
        if not events_path.exists():
            return []
        events: list[Event] = []
        with events_path.open("r", encoding="utf-8") as handle:
            for line_num, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    events.append(Event.from_json_line(line))
                except InvalidEventError as exc:
                    logger.warning("Failed to parse event at line %d: %s", line_num, exc)
        return events

    def load_events_after(self, after_event_id: int) -> list[Event]:
        return [e for e in self.load_events() if e.event_id > after_event_id]

    def load_snapshot_meta(self) -> SnapshotMeta | None:
        path = self.config.latest_snapshot_path()
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            first = handle.readline()
        if not first:
            raise SnapshotCorruptedError("Empty snapshot file")
        return SnapshotMeta.from_json_line(first)

    def load_snapshot(self) -> tuple[SnapshotMeta, list[Entity], list[Relation]] | None:
        """Load the latest snapshot's metadata, entities and relations."""
        path = self.config.latest_snapshot_path()
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            first = handle.readline()
            if not first:
                raise SnapshotCorruptedError("Empty snapshot")
            meta = SnapshotMeta.from_json_line(first)
            entities: list[Entity] = []
            relations: list[Relation] = []
            for line in handle:
                if not line.strip():
                    continue
                try:
                    value = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise EventStoreError(f"JSON error: {exc}") from exc
                if not isinstance(value, dict):
                    continue
                try:
                    if "entityType" in value and "name" in value:
                        entities.append(Entity.from_dict(value))
                    elif "relationType" in value:
                        relations.append(Relation.from_dict(value))
                except ValueError as exc:
                    raise EventStoreError(f"JSON error: {exc}") from exc
        return meta, entities, relations

    @staticmethod
    def apply_event(entities: list[Entity], relations: list[Relation], event: Event) -> None:
        """Apply one event to the given state in place."""
        data = _payload(event)
        kind = event.event_type

        if kind is EventType.ENTITY_CREATED:
            name = _str_field(data, "name")
            entity_type = _str_field(data, "entity_type")
            observations = _str_list_field(data, "observations")
            if _find_entity(entities, name) is None:
                entities.append(
                    Entity(
                        name=name,
                        entity_type=entity_type,
                        observations=observations,
                        created_by=event.user,
                        updated_by=event.user,
                        created_at=event.timestamp,
                        updated_at=event.timestamp,
                    )
                )

        elif kind is EventType.ENTITY_UPDATED:
            name = _str_field(data, "name")
            new_type = _opt_str_field(data, "entity_type")
            entity = _find_entity(entities, name)
            if entity is not None:
                if new_type is not None:
                    entity.entity_type = new_type
                _touch(entity, event)

        elif kind is EventType.ENTITY_DELETED:
            name = _str_field(data, "name")
            entities[:] = [e for e in entities if e.name != name]
            relations[:] = [r for r in relations if r.from_ != name and r.to != name]

        elif kind is EventType.OBSERVATION_ADDED:
            entity_name = _str_field(data, "entity")
            observation = _str_field(data, "observation")
            entity = _find_entity(entities, entity_name)
            if entity is not None:
                if observation not in entity.observations:
                    entity.observations.append(observation)
                _touch(entity, event)

        elif kind is EventType.OBSERVATION_REMOVED:
            entity_name = _str_field(data, "entity")
            observation = _str_field(data, "observation")
            entity = _find_entity(entities, entity_name)
            if entity is not None:
                entity.observations = [o for o in entity.observations if o != observation]
                _touch(entity, event)

        elif kind is EventType.RELATION_CREATED:
            key = (
                _str_field(data, "from"),
                _str_field(data, "to"),
                _str_field(data, "relation_type"),
            )
            valid_from = _opt_int_field(data, "valid_from")
            valid_to = _opt_int_field(data, "valid_to")
            if not any(r.key() == key for r in relations):
                relations.append(
                    Relation(
                        from_=key[0],
                        to=key[1],
                        relation_type=key[2],
                        created_by=event.user,
                        created_at=event.timestamp,
                        valid_from=valid_from,
                        valid_to=valid_to,
                    )
                )

        elif kind is EventType.RELATION_DELETED:
            key = (
                _str_field(data, "from"),
                _str_field(data, "to"),
                _str_field(data, "relation_type"),
            )
            relations[:] = [r for r in relations if r.key() != key]

    def replay_all(self) -> tuple[list[Entity], list[Relation], int]:
        """Rebuild state from every event; also return the highest event id."""
        entities: list[Entity] = []
        relations: list[Relation] = []
        max_event_id = 0
        for event in self.load_events():
            self.apply_event(entities, relations, event)
            max_event_id = max(max_event_id, event.event_id)
        return entities, relations, max_event_id

    def replay_after(
        self, entities: list[Entity], relations: list[Relation], after_event_id: int
    ) -> int:
        """Apply events newer than after_event_id; return the highest id seen."""
        max_event_id = after_event_id
        for event in self.load_events_after(after_event_id):
            self.apply_event(entities, relations, event)
            max_event_id = max(max_event_id, event.event_id)
        return max_event_id

    def initialize(self) -> tuple[list[Entity], list[Relation]]:
        """Load the latest snapshot, if any, and replay the events after it."""
        loaded = self.load_snapshot()
        if loaded is not None:
            meta, entities, relations = loaded
            self.last_snapshot_event_id = meta.last_event_id
            self.next_event_id = meta.last_event_id + 1
            max_event_id = self.replay_after(entities, relations, meta.last_event_id)
            if max_event_id > self.next_event_id:
                self.next_event_id = max_event_id + 1
            self.events_since_snapshot = max_event_id - meta.last_event_id
            logger.info(
                "Loaded snapshot (event_id: %d) + replayed %d events. "
                "Total: %d entities, %d relations.",
                meta.last_event_id,
                self.events_since_snapshot,
                len(entities),
                len(relations),
            )
            return entities, relations

        entities, relations, max_event_id = self.replay_all()
        if max_event_id > 0:
            self.next_event_id = max_event_id + 1
            self.events_since_snapshot = max_event_id
        logger.info(
            "No snapshot found. Replayed %d events. Total: %d entities, %d relations.",
            max_event_id,
            len(entities),
            len(relations),
        )
        return entities, relations

    def snapshot_created(self, last_event_id: int) -> None:
        """Reset the snapshot counter after a snapshot was written."""
        self.last_snapshot_event_id = last_event_id
        self.events_since_snapshot = 0