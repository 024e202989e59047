"""Creation, loading and backup of point-in-time graph snapshots."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path

from .models import (
    Entity,
    EventStoreConfig,
    EventStoreError,
    Relation,
    SnapshotCorruptedError,
    SnapshotMeta,
)

logger = logging.getLogger(__name__)

SnapshotContents = tuple[SnapshotMeta, list[Entity], list[Relation]]


def _dump(value: dict) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _write_snapshot_file(
    path: Path, meta: SnapshotMeta, entities: Sequence[Entity], relations: Sequence[Relation]
) -> None:
    with path.open("w", encoding="utf-8") as handle:
        handle.write(meta.to_json_line() + "\n")
        for entity in entities:
            handle.write(_dump(entity.to_dict()) + "\n")
        for relation in relations:
            handle.write(_dump(relation.to_dict()) + "\n")
        handle.flush()
        os.fsync(handle.fileno())


def _read_snapshot_file(
    path: Path, empty_message: str, report_line_numbers: bool
) -> SnapshotContents:
    with path.open("r", encoding="utf-8") as handle:
        first = handle.readline()
        if not first:
            raise SnapshotCorruptedError(empty_message)
        meta = SnapshotMeta.from_json_line(first)

        entities: list[Entity] = []
        relations: list[Relation] = []
        for line_num, line in enumerate(handle, start=2):
            if not line.strip():
                continue
            try:
                value = json.loads(line)
            except json.JSONDecodeError as exc:
                if report_line_numbers:
                    raise SnapshotCorruptedError(f"Line {line_num}: {exc}") from exc
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


class SnapshotManager:
    """Writes and reads the latest snapshot and its backup."""

    def __init__(self, config: EventStoreConfig) -> None:
        self.config = config

    def latest_path(self) -> Path:
        return self.config.latest_snapshot_path()

    def previous_path(self) -> Path:
        return self.config.previous_snapshot_path()

    def snapshot_exists(self) -> bool:
        return self.latest_path().exists()

    def create_snapshot(
        self, last_event_id: int, entities: Sequence[Entity], relations: Sequence[Relation]
    ) -> SnapshotMeta:
        """Write a snapshot atomically, replacing the latest one."""
        latest = self.latest_path()
        self.config.snapshots_dir().mkdir(parents=True, exist_ok=True)
        meta = SnapshotMeta.create(last_event_id, len(entities), len(relations))

        temp_path = latest.with_suffix(".tmp")
        try:
            _write_snapshot_file(temp_path, meta, entities, relations)
            os.replace(temp_path, latest)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

        logger.info(
            "Created snapshot: %d entities, %d relations (event_id: %d)",
            len(entities),
            len(relations),
            last_event_id,
        )
        return meta

    def create_snapshot_with_backup(
        self, last_event_id: int, entities: Sequence[Entity], relations: Sequence[Relation]
    ) -> SnapshotMeta:
        """Write a snapshot, keeping the one it replaces as the backup."""
        latest = self.latest_path()
        previous = self.previous_path()
        temp_path = latest.with_suffix(".tmp")

        self.config.snapshots_dir().mkdir(parents=True, exist_ok=True)
        meta = SnapshotMeta.create(last_event_id, len(entities), len(relations))

        _write_snapshot_file(temp_path, meta, entities, relations)

        if latest.exists():
            previous.unlink(missing_ok=True)
            os.replace(latest, previous)

        os.replace(temp_path, latest)

        logger.info(
            "Created snapshot with backup: %d entities, %d relations (event_id: %d)",
            len(entities),
            len(relations),
            last_event_id,
        )
        return meta

    def load_meta(self) -> SnapshotMeta | None:
        """Read only the header of the latest snapshot."""
        path = self.latest_path()
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            first = handle.readline()
        if not first:
            raise SnapshotCorruptedError("Empty snapshot file")
        return SnapshotMeta.from_json_line(first)

    def load_full(self) -> SnapshotContents | None:
        """Read the latest snapshot's metadata, entities and relations."""
        path = self.latest_path()
        if not path.exists():
            return None
        meta, entities, relations = _read_snapshot_file(
            path, "Empty snapshot", report_line_numbers=True
        )
        if len(entities) != meta.entity_count:
            logger.warning(
                "Expected %d entities, found %d", meta.entity_count, len(entities)
            )
        if len(relations) != meta.relation_count:
            logger.warning(
                "Expected %d relations, found %d", meta.relation_count, len(relations)
            )
        return meta, entities, relations

    def recover_from_backup(self) -> SnapshotContents | None:
        """Read the backup snapshot, if there is one."""
        path = self.previous_path()
        if not path.exists():
            return None
        logger.info("Attempting recovery from backup snapshot...")
        meta, entities, relations = _read_snapshot_file(
            path, "Empty backup", report_line_numbers=False
        )
        logger.info(
            "Recovered from backup: %d entities, %d relations",
            len(entities),
            len(relations),
        )
        return meta, entities, relations

    def clear_snapshots(self) -> None:
        """Delete the latest snapshot and its backup."""
        self.latest_path().unlink(missing_ok=True)
        self.previous_path().unlink(missing_ok=True)