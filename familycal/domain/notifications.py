"""Upcoming-event notifications for familycal.

NotificationScheduler decides, tick by tick, which events just entered the
lead-time window before their start and announces each one at most once per
session. NotificationService drives it from two asyncio timers: a fast
evaluation tick and a slower cleanup tick that forgets events which have
already started.

Events are only announced when discovered before they start; an event first
seen after its start time never fires.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from ..core.clock import coerce_timestamp, now_local, to_naive_local
from ..models import is_anytime_start
from .fired_store import FiredStore

logger = logging.getLogger(__name__)

EventSource = Callable[[], Union[Iterable[Any], Awaitable[Iterable[Any]]]]
DueCallback = Callable[[Any], Optional[Awaitable[None]]]


@dataclass
class NotificationConfig:
    """Timing settings for notifications."""

    lead_time_minutes: int = 10
    evaluation_interval_seconds: int = 30
    cleanup_interval_seconds: int = 300
    surface_all_due: bool = True

    @classmethod
    def from_settings(cls, settings: Any) -> "NotificationConfig":
        """Extract notification settings from a settings object (or use defaults)."""
        return cls(
            lead_time_minutes=getattr(settings, "lead_time_minutes", 10),
            evaluation_interval_seconds=getattr(settings, "evaluation_interval_seconds", 30),
            cleanup_interval_seconds=getattr(settings, "cleanup_interval_seconds", 300),
            surface_all_due=getattr(settings, "surface_all_due", True),
        )


def _field(event: Any, *names: str) -> Any:
    """Read the first present field from a model or a mapping."""
    for name in names:
        if isinstance(event, Mapping):
            if name in event:
                return event[name]
        elif hasattr(event, name):
            return getattr(event, name)
    return None


def event_id_of(event: Any) -> Optional[str]:
    """Return the event id as a non-empty string, or None."""
    value = _field(event, "id")
    if value is None:
        return None
    value = str(value)
    return value or None


def event_start_of(event: Any) -> Optional[datetime]:
    """Return the event start as a naive local datetime, or None if unusable."""
    return coerce_timestamp(_field(event, "start_time", "startTime"))


class NotificationScheduler:
    """Decides which events are due for a one-shot notification.

    The scheduler owns its FiredStore and never mutates the events it is
    given. Ticks are driven by the caller, which keeps it testable without a
    real clock.
    """

    def __init__(self, settings: Any = None, store: Optional[FiredStore] = None):
        """Initialize the scheduler.

        Args:
            settings: Object exposing lead_time_minutes / surface_all_due
            store: Fired-id store (a fresh one per scheduler by default)
        """
        config = NotificationConfig.from_settings(settings)
        self.lead_time = timedelta(minutes=config.lead_time_minutes)
        self.surface_all_due = config.surface_all_due
        self.fired = store if store is not None else FiredStore()

    def evaluate(self, events: Iterable[Any], now: datetime) -> list[Any]:
        """Run one evaluation tick.

        Returns every event that newly entered its window, in input order.
        With ``surface_all_due`` disabled at most the first one is returned
        and later matches are left for following ticks.
        """
        return self._evaluate(events, now, limit=None if self.surface_all_due else 1)

    def next_due(self, events: Iterable[Any], now: datetime) -> Optional[Any]:
        """Run one evaluation tick that announces at most one event."""
        due = self._evaluate(events, now, limit=1)
        return due[0] if due else None

    def cleanup(self, events: Iterable[Any], now: datetime) -> int:
        """Run one cleanup tick.

        Fired events still present in ``events`` with a later start (moved
        by an edit) keep their entry until the new start, so they are not
        announced twice. Everything whose start has passed is forgotten.

        Returns:
            Number of ids purged.
        """
        now = to_naive_local(now)
        for event in events:
            event_id = event_id_of(event)
            start = event_start_of(event)
            if event_id is None or start is None:
                continue
            if self.fired.extend(event_id, start):
                logger.debug("Fired event %s rescheduled to %s", event_id, start.isoformat())

        purged = self.fired.purge_expired(now)
        return len(purged)

    def _evaluate(self, events: Iterable[Any], now: datetime, limit: Optional[int]) -> list[Any]:
        now = to_naive_local(now)
        due: list[Any] = []

        for event in events:
            event_id = event_id_of(event)
            if event_id is None:
                logger.debug("Skipping event without id: %r", event)
                continue

            start = event_start_of(event)
            if start is None:
                logger.debug("Skipping event %s with unusable start time", event_id)
                continue

            if is_anytime_start(start):
                continue

            remaining = start - now
            if not timedelta(0) < remaining <= self.lead_time:
                continue

            if not self.fired.mark_fired(event_id, start):
                continue

            logger.info(
                "Event %s due: starts in %.1f minutes", event_id, remaining.total_seconds() / 60
            )
            due.append(event)
            if limit is not None and len(due) >= limit:
                break

        return due


class NotificationService:
    """Runs a NotificationScheduler on two independent asyncio timers.

    The evaluation timer checks the live event list right away and then every
    ``evaluation_interval_seconds``; the cleanup timer purges stale state every
    ``cleanup_interval_seconds``. Neither timer ever raises out of a tick.
    """

    def __init__(
        self,
        event_source: EventSource,
        on_notification_due: DueCallback,
        settings: Any = None,
        scheduler: Optional[NotificationScheduler] = None,
        time_provider: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the service.

        Args:
            event_source: Returns (or resolves to) the current live event list
            on_notification_due: Called once per due event, sync or async
            settings: Object exposing the notification timing settings
            scheduler: Scheduler to drive (built from settings by default)
            time_provider: Returns the current naive local time
        """
        config = NotificationConfig.from_settings(settings)
        self.evaluation_interval = config.evaluation_interval_seconds
        self.cleanup_interval = config.cleanup_interval_seconds
        self.scheduler = scheduler or NotificationScheduler(settings)
        self._event_source = event_source
        self._on_due = on_notification_due
        self._now = time_provider or now_local

        self._evaluation_task: Optional[asyncio.Task[None]] = None
        self._cleanup_task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        """True while either timer task is alive."""
        return any(t is not None and not t.done() for t in (self._evaluation_task, self._cleanup_task))

    async def start(self) -> None:
        """Start both timer tasks."""
        if self._evaluation_task is None or self._evaluation_task.done():
            self._evaluation_task = asyncio.create_task(self._evaluation_loop())
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.debug(
            "Notification timers started: evaluation=%ds, cleanup=%ds",
            self.evaluation_interval,
            self.cleanup_interval,
        )

    async def stop(self) -> None:
        """Cancel both timer tasks and wait for them to finish."""
        for task in (self._evaluation_task, self._cleanup_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._evaluation_task = None
        self._cleanup_task = None
        logger.debug("Notification timers stopped")

    async def run_evaluation_tick(self) -> list[Any]:
        """Evaluate the current event list once and deliver due signals."""
        events = await self._load_events()
        if events is None:
            return []

        due = self.scheduler.evaluate(events, self._now())
        for event in due:
            try:
                result = self._on_due(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Notification consumer failed for event %s", event_id_of(event))
        return due

    async def run_cleanup_tick(self) -> int:
        """Purge fired ids for events that have already started."""
        events = await self._load_events()
        return self.scheduler.cleanup(events or [], self._now())

    async def _load_events(self) -> Optional[list[Any]]:
        try:
            result = self._event_source()
            if inspect.isawaitable(result):
                result = await result
            return list(result or [])
        except Exception:
            logger.exception("Failed to load events for notification tick")
            return None

    async def _evaluation_loop(self) -> None:
        while True:
            try:
                await self.run_evaluation_tick()
                await asyncio.sleep(self.evaluation_interval)
            except asyncio.CancelledError:
                logger.debug("Notification evaluation loop cancelled")
                break
            except Exception as e:
                logger.error("Error in notification evaluation loop: %s", e, exc_info=True)
                await asyncio.sleep(self.evaluation_interval)

    async def _cleanup_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.cleanup_interval)
                purged = await self.run_cleanup_tick()
                if purged:
                    logger.debug("Notification cleanup purged %d ids", purged)
            except asyncio.CancelledError:
                logger.debug("Notification cleanup loop cancelled")
                break
            except Exception as e:
                logger.error("Error in notification cleanup loop: %s", e, exc_info=True)
