"""Main API routes for familycal."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from ..core.clock import coerce_timestamp
from ..domain.series import create_event_series, parse_request
from ..exceptions import EventStorageError, InvalidRuleError
from ..store import EventQuery

logger = logging.getLogger(__name__)


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


def register_api_routes(
    app: web.Application,
    store: Any,
    expander: Any,
    scheduler: Any,
    service: Any,
    pending_notifications: Any,
    refresh_window: Callable[[], Awaitable[None]],
) -> None:
    """Register main API routes.

    Args:
        app: aiohttp web application
        store: Event repository (insert_events / query_events)
        expander: RecurrenceExpander used for event creation
        scheduler: NotificationScheduler (for health reporting)
        service: NotificationService (for health reporting)
        pending_notifications: Deque of DueNotification waiting to be polled
        refresh_window: Reloads the live event window after writes
    """

    async def create_event(request: web.Request) -> web.Response:
        """Create one event, or a recurring series when ``recurrence`` is given."""
        try:
            payload = await request.json()
        except json.JSONDecodeError:
            return _error("request body must be valid JSON", 400)

        recurring = isinstance(payload, dict) and bool(payload.get("recurrence"))
        prefix = "could not create recurring series" if recurring else "could not create event"

        try:
            seed, rule = parse_request(payload)
            result = create_event_series(store, seed, rule, expander)
        except InvalidRuleError as e:
            logger.info("Rejected event creation: %s", e)
            return _error(f"{prefix}: {e}", 400)
        except EventStorageError as e:
            logger.warning("Event storage refused batch: %s", e)
            return _error(f"{prefix}: {e}", 409)

        await refresh_window()

        body = {
            "events": [ev.model_dump(mode="json", by_alias=True) for ev in result.occurrences],
            "seriesId": result.series_id,
            "truncated": result.truncated,
            "stopReason": result.stop_reason.value,
            "rrule": rule.to_rrule_string() if rule else None,
        }
        return web.json_response(body, status=201)

    async def list_events(request: web.Request) -> web.Response:
        """List stored events, optionally filtered by range, member or series."""
        params = request.rel_url.query
        bounds = {}
        for name in ("start", "end"):
            raw = params.get(name)
            if raw is None:
                continue
            parsed = coerce_timestamp(raw)
            if parsed is None:
                return _error(f"invalid {name} timestamp: {raw!r}", 400)
            bounds[name] = parsed

        query = EventQuery(
            member_id=params.get("memberId"),
            series_id=params.get("seriesId"),
            **bounds,
        )
        events = store.query_events(query)
        return web.json_response(
            {"events": [ev.model_dump(mode="json", by_alias=True) for ev in events]}
        )

    async def poll_notifications(_request: web.Request) -> web.Response:
        """Return and clear due notifications collected since the last poll."""
        drained = []
        while pending_notifications:
            drained.append(pending_notifications.popleft().model_dump(mode="json", by_alias=True))
        return web.json_response({"notifications": drained})

    async def health_check(_request: web.Request) -> web.Response:
        """Report store size and notification state, including fired ids."""
        return web.json_response(
            {
                "status": "ok",
                "eventCount": len(store),
                "firedCount": len(scheduler.fired),
                "firedIds": scheduler.fired.active_list(),
                "pendingNotifications": len(pending_notifications),
                "notificationsRunning": service.is_running,
            }
        )

    app.router.add_post("/api/events", create_event)
    app.router.add_get("/api/events", list_events)
    app.router.add_get("/api/notifications", poll_notifications)
    app.router.add_get("/api/health", health_check)
