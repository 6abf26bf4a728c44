"""Event persistence contract and an in-memory implementation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel, field_validator

from .core.clock import to_naive_local
from .exceptions import EventStorageError
from .models import Event

logger = logging.getLogger(__name__)


class EventQuery(BaseModel):
    """Filter for querying stored events.

    ``start``/``end`` select events whose start time falls in [start, end).
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    member_id: Optional[str] = None
    series_id: Optional[str] = None

    @field_validator("start", "end", mode="after")
    @classmethod
    def _to_naive_local(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(value) if value is not None else None

    def matches(self, event: Event) -> bool:
        """Return True if ``event`` passes every filter that is set."""
        if self.start is not None and event.start_time < self.start:
            return False
        if self.end is not None and event.start_time >= self.end:
            return False
        if self.member_id is not None and self.member_id not in event.member_ids:
            return False
        if self.series_id is not None and event.series_id != self.series_id:
            return False
        return True


class EventRepository(Protocol):
    """What the scheduling code needs from persistence."""

    def insert_events(self, rows: Iterable[Event]) -> list[Event]:
        """Insert all rows or none of them."""
        ...

    def query_events(self, query: Optional[EventQuery] = None) -> list[Event]:
        """Return events matching ``query`` ordered by start time."""
        ...


class InMemoryEventStore:
    """Process-local event store keyed by event id."""

    def __init__(self, events: Optional[Iterable[Event]] = None) -> None:
        self._lock = threading.Lock()
        self._events: dict[str, Event] = {}
        if events:
            self.insert_events(events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def insert_events(self, rows: Iterable[Event]) -> list[Event]:
        """Insert a batch atomically.

        Raises:
            EventStorageError: If any id is duplicated, within the batch or
                against stored rows. Nothing from the batch is kept.
        """
        batch = list(rows)
        with self._lock:
            seen: set[str] = set()
            for event in batch:
                if event.id in self._events or event.id in seen:
                    raise EventStorageError(f"duplicate event id {event.id!r}")
                seen.add(event.id)

            for event in batch:
                self._events[event.id] = event

        logger.debug("Inserted %d events", len(batch))
        return batch

    def query_events(self, query: Optional[EventQuery] = None) -> list[Event]:
        query = query or EventQuery()
        with self._lock:
            matched = [e for e in self._events.values() if query.matches(e)]
        matched.sort(key=lambda e: (e.start_time, e.id))
        return matched
