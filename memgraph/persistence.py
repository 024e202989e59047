"""Event-sourced persistence: event log, snapshots and log rotation together."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from .models import (
    EventStoreConfig,
    EventStoreError,
    EventType,
    KnowledgeGraph,
    SnapshotMeta,
)
from .rotation import LogRotation
from .snapshot import SnapshotManager
from .stats import EventStoreStats, StatsCollector
from .store import EventStore

logger = logging.getLogger(__name__)


class EventSourcing:
    """Records graph mutations as events and keeps snapshots and archives in step."""

    def __init__(self, config: EventStoreConfig) -> None:
        self.config = config
        self.store = EventStore(config)
        self.snapshots = SnapshotManager(config)
        self.rotation = LogRotation(config)
        self._lock = threading.Lock()

    def initialize(self) -> KnowledgeGraph:
        """Rebuild the graph from the latest snapshot plus the events after it."""
        with self._lock:
            entities, relations = self.store.initialize()
        return KnowledgeGraph(entities=entities, relations=relations)

    def emit_event(self, event_type: EventType, user: str, data: dict[str, Any]) -> int:
        """Append a new event and return its id."""
        with self._lock:
            return self.store.create_and_append_event(event_type, user, data).event_id

    def _last_event_id(self) -> int:
        return max(self.store.next_event_id - 1, 0)

    def maybe_snapshot(self, graph: KnowledgeGraph) -> SnapshotMeta | None:
        """Snapshot the graph once enough events have accumulated; archive old events."""
        with self._lock:
            if not self.store.should_snapshot():
                return None
            last_event_id = self._last_event_id()
            meta = self.snapshots.create_snapshot_with_backup(
                last_event_id, graph.entities, graph.relations
            )
            if self.config.archive_old_events:
                try:
                    self.rotation.rotate_after_snapshot(last_event_id)
                except (OSError, EventStoreError) as exc:
                    logger.warning("Failed to rotate event log: %s", exc)
            self.store.snapshot_created(last_event_id)
            return meta

    def force_snapshot(self, graph: KnowledgeGraph) -> Path | None:
        """Snapshot the graph now if any event exists; return the snapshot path."""
        with self._lock:
            last_event_id = self._last_event_id()
            if last_event_id == 0:
                return None
            self.snapshots.create_snapshot_with_backup(
                last_event_id, graph.entities, graph.relations
            )
            self.store.snapshot_created(last_event_id)
            return self.snapshots.latest_path()

    def stats(self) -> EventStoreStats | None:
        """Statistics of the store on disk, or None if they cannot be gathered."""
        with self._lock:
            try:
                return StatsCollector(self.config).collect()
            except (OSError, EventStoreError) as exc:
                logger.warning("Failed to collect statistics: %s", exc)
                return None

    def rotate_log(self) -> Path | None:
        """Archive events covered by the latest snapshot; return the archive path."""
        with self._lock:
            try:
                meta = self.snapshots.load_meta()
            except (OSError, EventStoreError):
                return None
            if meta is None:
                return None
            return self.rotation.rotate_after_snapshot(meta.last_event_id)

    def cleanup_archives(self, keep_count: int) -> int:
        """Delete all but the keep_count newest archives; return how many went."""
        with self._lock:
            return self.rotation.cleanup_old_archives(keep_count)