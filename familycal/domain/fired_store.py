"""In-memory record of events already announced in this session.

Each fired event id maps to the moment it becomes safe to forget: the
event's own start time. Once that moment passes the event can never be due
again, so cleanup drops the entry to keep memory bounded over long sessions.
Nothing is persisted; a restart starts empty.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from datetime import datetime

logger = logging.getLogger(__name__)


class FiredStore:
    """Thread-safe mapping of fired event id -> purge-after timestamp.

    Both the evaluation tick and the cleanup tick read-modify-write the
    mapping, so every access goes through one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: dict[str, datetime] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, event_id: object) -> bool:
        if not isinstance(event_id, str):
            return False
        with self._lock:
            return event_id in self._store

    def mark_fired(self, event_id: str, purge_after: datetime) -> bool:
        """Record ``event_id`` as fired.

        Args:
            event_id: Non-empty event identifier
            purge_after: Timestamp after which the entry may be dropped

        Returns:
            True if the id was newly recorded, False if it had already fired.

        Raises:
            ValueError: if event_id is invalid.
        """
        if not event_id or not isinstance(event_id, str):
            raise ValueError("event_id must be a non-empty string")

        with self._lock:
            if event_id in self._store:
                return False
            self._store[event_id] = purge_after
            return True

    def extend(self, event_id: str, purge_after: datetime) -> bool:
        """Push an existing entry's purge time later (never earlier).

        Returns:
            True if the entry was moved.
        """
        with self._lock:
            current = self._store.get(event_id)
            if current is None or purge_after <= current:
                return False
            self._store[event_id] = purge_after
            return True

    def purge_expired(self, now: datetime) -> list[str]:
        """Drop entries whose purge time is strictly before ``now``.

        Returns:
            The purged ids.
        """
        with self._lock:
            keys = [k for k, v in self._store.items() if now > v]
            for k in keys:
                with contextlib.suppress(KeyError):
                    del self._store[k]

        if keys:
            logger.debug("Purged %d fired entries", len(keys))
        return keys

    def active_list(self) -> dict[str, str]:
        """Return mapping event_id -> purge_after ISO string."""
        with self._lock:
            return {k: v.isoformat() for k, v in self._store.items()}
