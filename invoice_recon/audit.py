"""Activity logging for reconciliation runs.

Every invoice check leaves one audit entry behind. Sinks decide where the
entry goes; the engine treats recording as best-effort and never lets a sink
failure change the reconciliation response.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import logger
from .schemas import ActivityEntry


def create_activity_entry(
    action: str,
    entity: str,
    entity_id: str,
    actor: Optional[str] = None,
    actor_name: Optional[str] = None,
    store_id: Optional[str] = None,
    entity_name: Optional[str] = None,
    description: Optional[str] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ActivityEntry:
    """Create an activity entry stamped with the current UTC time."""
    return ActivityEntry(
        actor=actor,
        actor_name=actor_name,
        store_id=store_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        entity_name=entity_name,
        description=description,
        ip=ip or "unknown",
        user_agent=user_agent or "unknown",
        created_at=datetime.now(timezone.utc),
    )


class ActivityLogSink(ABC):
    """Abstract base class for audit persistence backends."""

    @abstractmethod
    def record(self, entry: ActivityEntry) -> None:
        """Persist an activity entry."""


class LoggingActivitySink(ActivityLogSink):
    """Sink that writes entries to the application log."""

    def record(self, entry: ActivityEntry) -> None:
        logger.info(
            f"[audit] {entry.action} {entry.entity} {entry.entity_id} "
            f"store={entry.store_id} actor={entry.actor}: {entry.description}"
        )


class JsonLinesActivitySink(ActivityLogSink):
    """Sink that appends one JSON object per line to a file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def record(self, entry: ActivityEntry) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.model_dump(mode="json", by_alias=True), ensure_ascii=False))
            f.write("\n")

    def read_all(self) -> list[ActivityEntry]:
        """Load every entry recorded so far."""
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return [ActivityEntry.model_validate_json(line) for line in f if line.strip()]


class MemoryActivitySink(ActivityLogSink):
    """Sink that keeps entries in a list."""

    def __init__(self):
        self.entries: list[ActivityEntry] = []

    def record(self, entry: ActivityEntry) -> None:
        self.entries.append(entry)


def record_activity(sink: Optional[ActivityLogSink], entry: ActivityEntry) -> bool:
    """
    Record an entry without letting sink errors escape.

    Entries that name neither an actor nor a store cannot be attributed and
    are skipped.

    Returns:
        True if the sink accepted the entry
    """
    if sink is None:
        return False

    if not entry.actor and not entry.store_id:
        logger.warning(f"Skipping audit entry for {entry.entity} {entry.entity_id}: no actor or store")
        return False

    try:
        sink.record(entry)
    except Exception:
        logger.exception(f"Failed to record audit entry for {entry.entity} {entry.entity_id}")
        return False
    return True
