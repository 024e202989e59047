"""Statistics and replay benchmarks for an event store on disk."""

from __future__ import annotations

import json
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .models import EventStoreConfig, EventStoreError, EventType
from .rotation import LogRotation

_KB = 1024
_MB = _KB * 1024
_GB = _MB * 1024


def format_size(num_bytes: int) -> str:
    """Render a byte count as B, KB, MB or GB with two decimals above bytes."""
    if num_bytes >= _GB:
        return f"{num_bytes / _GB:.2f} GB"
    if num_bytes >= _MB:
        return f"{num_bytes / _MB:.2f} MB"
    if num_bytes >= _KB:
        return f"{num_bytes / _KB:.2f} KB"
    return f"{num_bytes} B"


def _non_negative_int(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return None


@dataclass
class EventStoreStats:
    """Counts and sizes describing an event store."""

    active_event_count: int = 0
    archived_event_count: int = 0
    active_log_size: int = 0
    archive_size: int = 0
    snapshot_size: int = 0
    archive_file_count: int = 0
    events_by_type: dict[EventType, int] = field(default_factory=dict)
    last_event_id: int = 0
    last_snapshot_event_id: int = 0
    events_since_snapshot: int = 0

    def total_events(self) -> int:
        return self.active_event_count + self.archived_event_count

    def total_size(self) -> int:
        return self.active_log_size + self.archive_size + self.snapshot_size


@dataclass
class ReplayBenchmark:
    """Timing of repeated reads of the active event log."""

    iterations: int = 0
    events_per_iteration: int = 0
    avg_duration_ms: int = 0
    events_per_second: float = 0.0


def _analyze_event_file(path: Path) -> tuple[int, int, dict[EventType, int], int]:
    size = path.stat().st_size
    count = 0
    by_type: Counter[EventType] = Counter()
    last_id = 0
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            if not line.strip():
                continue
            count += 1
            try:
                value = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(value, dict):
                continue
            event_id = _non_negative_int(value.get("eventId"))
            if event_id is not None and event_id > last_id:
                last_id = event_id
            type_name = value.get("eventType")
            if isinstance(type_name, str):
                try:
                    by_type[EventType(type_name)] += 1
                except ValueError:
                    pass
    return count, size, dict(by_type), last_id


def _snapshot_last_event_id(path: Path) -> int | None:
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        first = handle.readline()
    if not first:
        return None
    try:
        value = json.loads(first)
    except json.JSONDecodeError:
        return None
    if not isinstance(value, dict):
        return None
    return _non_negative_int(value.get("lastEventId"))


class StatsCollector:
    """Gathers statistics about the files of one event store."""

    def __init__(self, config: EventStoreConfig) -> None:
        self.config = config

    def collect(self) -> EventStoreStats:
        """Inspect the active log, archives and latest snapshot."""
        stats = EventStoreStats()

        events_path = self.config.events_path()
        if events_path.exists():
            (
                stats.active_event_count,
                stats.active_log_size,
                stats.events_by_type,
                stats.last_event_id,
            ) = _analyze_event_file(events_path)

        archives = LogRotation(self.config).list_archives()
        stats.archive_file_count = len(archives)
        stats.archived_event_count = sum(a.event_count for a in archives)
        stats.archive_size = sum(a.size for a in archives)

        snapshot_path = self.config.latest_snapshot_path()
        if snapshot_path.exists():
            stats.snapshot_size = snapshot_path.stat().st_size
            snapshot_id = _snapshot_last_event_id(snapshot_path)
            if snapshot_id is not None:
                stats.last_snapshot_event_id = snapshot_id

        if stats.last_event_id > stats.last_snapshot_event_id:
            stats.events_since_snapshot = stats.last_event_id - stats.last_snapshot_event_id

        return stats

    def benchmark_replay(self, iterations: int) -> ReplayBenchmark:
        """Parse the active log `iterations` times and report the average speed."""
        events_path = self.config.events_path()
        if not events_path.exists():
            return ReplayBenchmark()
        if iterations < 1:
            raise ValueError("iterations must be at least 1")

        total_seconds = 0.0
        event_count = 0
        for _ in range(iterations):
            started = time.perf_counter()
            with events_path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    if not line.strip():
                        continue
                    try:
                        json.loads(line)
                    except json.JSONDecodeError as exc:
                        raise EventStoreError(f"JSON error: {exc}") from exc
                    event_count += 1
            total_seconds += time.perf_counter() - started

        avg_seconds = total_seconds / iterations
        events_per_iteration = event_count // iterations
        events_per_second = events_per_iteration / avg_seconds if avg_seconds > 0 else 0.0
        return ReplayBenchmark(
            iterations=iterations,
            events_per_iteration=events_per_iteration,
            avg_duration_ms=int(avg_seconds * 1000),
            events_per_second=events_per_second,
        )