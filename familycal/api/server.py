"""aiohttp server for familycal: event API plus live upcoming-event alerts."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from aiohttp import web

from ..config_loader import Config
from ..core.clock import now_local
from ..domain.notifications import NotificationScheduler, NotificationService
from ..domain.recurrence import RecurrenceExpander
from ..middleware import correlation_id_middleware
from ..models import DueNotification, Event
from ..routes import register_api_routes
from ..store import EventQuery, InMemoryEventStore

logger = logging.getLogger(__name__)

# How far ahead the live window reaches, beyond the notification lead time
_WINDOW_LOOKAHEAD = timedelta(hours=24)


@dataclass
class ServerState:
    """Everything the routes and background tasks share."""

    config: Config
    store: InMemoryEventStore
    expander: RecurrenceExpander
    scheduler: NotificationScheduler
    service: NotificationService
    pending: deque[DueNotification]
    time_provider: Callable[[], datetime] = now_local
    # Event window stored as single-element list for atomic replacement
    event_window_ref: list[tuple[Event, ...]] = field(default_factory=lambda: [()])
    window_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def refresh_window(self) -> None:
        """Reload events starting between now and the lookahead horizon."""
        now = self.time_provider()
        query = EventQuery(
            start=now - timedelta(minutes=self.config.lead_time_minutes),
            end=now + _WINDOW_LOOKAHEAD,
        )
        events = tuple(self.store.query_events(query))
        async with self.window_lock:
            self.event_window_ref[0] = events
        logger.debug("Live event window refreshed: %d events", len(events))

    async def current_window(self) -> tuple[Event, ...]:
        async with self.window_lock:
            return self.event_window_ref[0]

    def on_notification_due(self, event: Event) -> None:
        """Queue a due-signal for the presentation layer to poll."""
        minutes = (event.start_time - self.time_provider()).total_seconds() / 60
        self.pending.append(
            DueNotification(
                event=event,
                minutes_until_start=round(minutes, 1),
                emitted_at=self.time_provider(),
            )
        )


def _make_app(
    config: Config,
    store: Optional[InMemoryEventStore] = None,
    time_provider: Optional[Callable[[], datetime]] = None,
) -> tuple[web.Application, ServerState]:
    """Build the aiohttp application and its shared state."""
    time_provider = time_provider or now_local
    store = store if store is not None else InMemoryEventStore()
    scheduler = NotificationScheduler(config)

    state_holder: list[ServerState] = []

    async def _event_source() -> tuple[Event, ...]:
        return await state_holder[0].current_window()

    def _on_due(event: Event) -> None:
        state_holder[0].on_notification_due(event)

    service = NotificationService(
        _event_source,
        _on_due,
        settings=config,
        scheduler=scheduler,
        time_provider=time_provider,
    )
    state = ServerState(
        config=config,
        store=store,
        expander=RecurrenceExpander(config, time_provider=time_provider),
        scheduler=scheduler,
        service=service,
        pending=deque(maxlen=config.max_pending_notifications),
        time_provider=time_provider,
    )
    state_holder.append(state)

    app = web.Application(middlewares=[correlation_id_middleware])
    register_api_routes(
        app,
        store=state.store,
        expander=state.expander,
        scheduler=state.scheduler,
        service=state.service,
        pending_notifications=state.pending,
        refresh_window=state.refresh_window,
    )
    return app, state


async def _refresh_loop(state: ServerState, stop_event: asyncio.Event) -> None:
    """Background refresher: immediate refresh then periodic refreshes."""
    interval = state.config.refresh_interval_seconds
    logger.debug("_refresh_loop starting with interval %d seconds", interval)

    while not stop_event.is_set():
        try:
            await state.refresh_window()
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Refresh loop unexpected error")
            await asyncio.sleep(interval)


async def _serve(config: Config, external_stop_event: asyncio.Event | None = None) -> None:
    """Run the server and background tasks until signalled to stop.

    Args:
        config: Server configuration.
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()
    app, state = _make_app(config)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server_bind, config.server_port)
    await site.start()
    logger.info("Server started on %s:%d", config.server_bind, config.server_port)

    refresher = asyncio.create_task(_refresh_loop(state, stop_event))
    await state.service.start()

    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    await state.service.stop()
    refresher.cancel()
    try:
        await refresher
    except asyncio.CancelledError:
        pass
    await runner.cleanup()


def start_server(config: Any) -> None:
    """Blocking entry point used by familycal.run_server()."""
    if not isinstance(config, Config):
        config = Config.from_dict(config)
    asyncio.run(_serve(config))
