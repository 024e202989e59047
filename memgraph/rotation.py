"""Archiving of event-log entries already covered by a snapshot."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .models import EventStoreConfig

logger = logging.getLogger(__name__)


@dataclass
class ArchiveInfo:
    """An archive file of old events."""

    path: Path
    size: int
    event_count: int


def count_events(path: str | Path) -> int:
    """Count the lines of an event file."""
    with Path(path).open("rb") as handle:
        return sum(1 for _ in handle)


def _extract_event_id(line: str) -> int | None:
    try:
        value = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(value, dict):
        return None
    event_id = value.get("eventId")
    if isinstance(event_id, int) and not isinstance(event_id, bool) and event_id >= 0:
        return event_id
    return None


def _write_lines(path: Path, lines: list[str]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        handle.writelines(line + "\n" for line in lines)
        handle.flush()
        os.fsync(handle.fileno())


class LogRotation:
    """Moves snapshotted events out of the active log into archive files."""

    def __init__(self, config: EventStoreConfig) -> None:
        self.config = config

    def rotate_after_snapshot(self, snapshot_event_id: int) -> Path | None:
        """Archive events up to snapshot_event_id; return the archive path, or None."""
        events_path = self.config.events_path()
        if not events_path.exists():
            return None

        archive_lines: list[str] = []
        keep_lines: list[str] = []
        with events_path.open("r", encoding="utf-8") as handle:
            for raw in handle:
                line = raw.rstrip("\n").rstrip("\r")
                if not line.strip():
                    continue
                event_id = _extract_event_id(line)
                if event_id is not None and event_id <= snapshot_event_id:
                    archive_lines.append(line)
                else:
                    keep_lines.append(line)

        if not archive_lines:
            return None

        archive_dir = self.config.archive_dir()
        archive_dir.mkdir(parents=True, exist_ok=True)
        first_id = _extract_event_id(archive_lines[0]) or 0
        archive_path = archive_dir / f"events_{first_id}_to_{snapshot_event_id}.jsonl"
        _write_lines(archive_path, archive_lines)

        temp_path = events_path.with_suffix(".tmp")
        _write_lines(temp_path, keep_lines)
        os.replace(temp_path, events_path)

        logger.info("Rotated %d events to archive: %s", len(archive_lines), archive_path)
        return archive_path

    def list_archives(self) -> list[ArchiveInfo]:
        """All .jsonl archives, ordered by file name."""
        archive_dir = self.config.archive_dir()
        if not archive_dir.exists():
            return []
        archives = [
            ArchiveInfo(path=path, size=path.stat().st_size, event_count=count_events(path))
            for path in archive_dir.iterdir()
            if path.is_file() and path.suffix == ".jsonl"
        ]
        archives.sort(key=lambda a: a.path.name)
        return archives

    def cleanup_old_archives(self, keep_count: int) -> int:
        """Delete all but the keep_count archives last in name order; return how many went."""
        archives = self.list_archives()
        if len(archives) <= keep_count:
            return 0
        archives.sort(key=lambda a: a.path.name, reverse=True)
        to_delete = archives[keep_count:]
        for archive in to_delete:
            archive.path.unlink()
            logger.info("Deleted old archive: %s", archive.path)
        return len(to_delete)

    def total_archive_size(self) -> int:
        """Total size of all archives in bytes."""
        return sum(a.size for a in self.list_archives())