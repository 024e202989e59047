"""Conversion of a legacy graph file into an event log and snapshot."""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from .models import (
    Entity,
    Event,
    EventSource,
    EventStoreConfig,
    EventType,
    Relation,
    current_timestamp,
)
from .snapshot import SnapshotManager

logger = logging.getLogger(__name__)

_AGENT = "MigrationTool"
_DEFAULT_USER = "migration"


@dataclass
class MigrationResult:
    """Counts of what a migration produced."""

    entities_migrated: int
    relations_migrated: int
    events_created: int
    snapshot_created: bool


def _preview(text: str) -> str:
    return text[:50] + "..." if len(text) > 50 else text


class MigrationTool:
    """Turns a legacy memory file into creation events plus an initial snapshot."""

    def __init__(self, config: EventStoreConfig | None = None) -> None:
        self.config = config if config is not None else EventStoreConfig()

    def migrate_from_legacy(self, legacy_path: str | Path) -> MigrationResult:
        """Migrate the legacy file; raises FileNotFoundError if it is missing."""
        legacy_path = Path(legacy_path)
        if not legacy_path.exists():
            raise FileNotFoundError(f"Legacy file not found: {legacy_path}")

        entities, relations = self.read_legacy_file(legacy_path)
        self.config.data_dir.mkdir(parents=True, exist_ok=True)

        events = self.create_migration_events(entities, relations)
        self._write_events(self.config.events_path(), events)

        last_event_id = events[-1].event_id if events else 0
        SnapshotManager(self.config).create_snapshot_with_backup(
            last_event_id, entities, relations
        )

        backup_path = legacy_path.with_name(legacy_path.stem + ".jsonl.migrated")
        if not backup_path.exists():
            shutil.copy2(legacy_path, backup_path)

        return MigrationResult(
            entities_migrated=len(entities),
            relations_migrated=len(relations),
            events_created=len(events),
            snapshot_created=True,
        )

    def read_legacy_file(self, path: str | Path) -> tuple[list[Entity], list[Relation]]:
        """Read entities and relations; unrecognised lines are logged and skipped."""
        entities: list[Entity] = []
        relations: list[Relation] = []
        with Path(path).open("r", encoding="utf-8") as handle:
            for raw in handle:
                line = raw.strip()
                if not line:
                    continue
                try:
                    value = json.loads(line)
                except json.JSONDecodeError:
                    value = None
                if value is not None:
                    try:
                        entities.append(Entity.from_dict(value))
                        continue
                    except ValueError:
                        pass
                    try:
                        relations.append(Relation.from_dict(value))
                        continue
                    except ValueError:
                        pass
                logger.warning("Could not parse line: %s", _preview(line))
        return entities, relations

    def create_migration_events(
        self, entities: list[Entity], relations: list[Relation]
    ) -> list[Event]:
        """One creation event per entity, then per relation, numbered from 1."""
        timestamp = current_timestamp()
        events: list[Event] = []

        for entity in entities:
            events.append(
                Event(
                    event_id=len(events) + 1,
                    event_type=EventType.ENTITY_CREATED,
                    timestamp=timestamp,
                    user=entity.created_by or _DEFAULT_USER,
                    data={
                        "name": entity.name,
                        "entity_type": entity.entity_type,
                        "observations": list(entity.observations),
                    },
                    agent=_AGENT,
                    source=EventSource.MIGRATION,
                )
            )

        for relation in relations:
            events.append(
                Event(
                    event_id=len(events) + 1,
                    event_type=EventType.RELATION_CREATED,
                    timestamp=timestamp,
                    user=relation.created_by or _DEFAULT_USER,
                    data={
                        "from": relation.from_,
                        "to": relation.to,
                        "relation_type": relation.relation_type,
                        "valid_from": relation.valid_from,
                        "valid_to": relation.valid_to,
                    },
                    agent=_AGENT,
                    source=EventSource.MIGRATION,
                )
            )

        return events

    @staticmethod
    def _write_events(path: Path, events: list[Event]) -> None:
        temp_path = path.with_suffix(".tmp")
        with temp_path.open("w", encoding="utf-8") as handle:
            handle.writelines(event.to_json_line() + "\n" for event in events)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)

    def needs_migration(self, legacy_path: str | Path) -> bool:
        """True if the legacy file exists and neither an event log nor a snapshot does."""
        return (
            Path(legacy_path).exists()
            and not self.config.events_path().exists()
            and not self.config.latest_snapshot_path().exists()
        )