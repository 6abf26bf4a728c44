"""Recurrence expansion for familycal events.

Turns one seed event and a recurrence rule into the ordered list of concrete
occurrences to persist. Every occurrence is computed from the seed itself
(``seed + k periods``) so month-end clamping never drifts: a Jan 31 monthly
series lands on Feb 28/29, Mar 31, Apr 30 and so on.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from ..config_loader import MAX_HORIZON_YEARS, MAX_OCCURRENCES
from ..core.clock import now_local
from ..exceptions import InvalidRuleError
from ..models import (
    AfterCount,
    Event,
    EventDraft,
    ExpansionResult,
    Frequency,
    NoEnd,
    OnDate,
    RecurrenceRule,
    StopReason,
)

logger = logging.getLogger(__name__)

# Offset of occurrence k from the seed, per frequency
_PERIODS: dict[Frequency, Callable[[int], relativedelta]] = {
    Frequency.DAILY: lambda k: relativedelta(days=k),
    Frequency.WEEKLY: lambda k: relativedelta(days=7 * k),
    Frequency.BIWEEKLY: lambda k: relativedelta(days=14 * k),
    Frequency.MONTHLY: lambda k: relativedelta(months=k),
    Frequency.YEARLY: lambda k: relativedelta(years=k),
}


@dataclass
class RecurrenceExpanderConfig:
    """Safety caps for recurrence expansion."""

    max_occurrences: int = MAX_OCCURRENCES
    horizon_years: int = MAX_HORIZON_YEARS

    @classmethod
    def from_settings(cls, settings: Any) -> "RecurrenceExpanderConfig":
        """Extract expansion caps from a settings object (or use defaults).

        Settings can tighten the caps but never lift them. Non-positive or
        non-numeric values fall back to the hard cap.
        """
        return cls(
            max_occurrences=_bounded_cap(settings, "max_occurrences", MAX_OCCURRENCES),
            horizon_years=_bounded_cap(settings, "horizon_years", MAX_HORIZON_YEARS),
        )


def _bounded_cap(settings: Any, name: str, hard_cap: int) -> int:
    raw = getattr(settings, name, hard_cap)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r; using %d", name, raw, hard_cap)
        return hard_cap
    if value < 1:
        logger.warning("%s %d would disable expansion; using %d", name, value, hard_cap)
        return hard_cap
    if value > hard_cap:
        logger.warning("%s %d above hard cap; coercing to %d", name, value, hard_cap)
        return hard_cap
    return value


def _new_event_id() -> str:
    return str(uuid.uuid4())


class RecurrenceExpander:
    """Expands a seed event into a capped series of occurrences.

    Pure computation: nothing is persisted and no shared state is kept, so
    one expander may serve independent requests concurrently.
    """

    def __init__(
        self,
        settings: Any = None,
        id_factory: Optional[Callable[[], str]] = None,
        time_provider: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the expander.

        Args:
            settings: Object exposing ``max_occurrences`` / ``horizon_years``
            id_factory: Allocates ids for occurrences (defaults to uuid4 strings)
            time_provider: Returns the current naive local time
        """
        config = RecurrenceExpanderConfig.from_settings(settings)
        self.max_occurrences = config.max_occurrences
        self.horizon_years = config.horizon_years
        self._id_factory = id_factory or _new_event_id
        self._now = time_provider or now_local

    def validate(self, seed: EventDraft, rule: Optional[RecurrenceRule]) -> None:
        """Reject a request that must not produce any occurrence.

        Raises:
            InvalidRuleError: On an unknown frequency, an inverted time range,
                a non-positive count or an already-past end date
        """
        if seed.end_time < seed.start_time:
            raise InvalidRuleError(
                f"event ends before it starts ({seed.end_time.isoformat()} < "
                f"{seed.start_time.isoformat()})"
            )
        if rule is None:
            return

        try:
            Frequency(rule.frequency)
        except ValueError as e:
            raise InvalidRuleError(f"unknown frequency {rule.frequency!r}") from e

        end = rule.end_condition
        if isinstance(end, AfterCount):
            if end.count < 1:
                raise InvalidRuleError(f"occurrence count must be at least 1, got {end.count}")
        elif isinstance(end, OnDate):
            today = self._now().date()
            if end.until_datetime.date() < today:
                raise InvalidRuleError(f"end date {end.until.isoformat()} is already past")
        elif not isinstance(end, NoEnd):
            raise InvalidRuleError(f"unknown end condition {end!r}")

    def expand(self, seed: EventDraft, rule: Optional[RecurrenceRule] = None) -> ExpansionResult:
        """Expand ``seed`` under ``rule`` into concrete occurrences.

        Occurrence #1 is always the seed itself. Without a rule the result is
        a single event with no series id.

        Raises:
            InvalidRuleError: If the request is rejected by validate()
        """
        self.validate(seed, rule)

        first_id = seed.id or self._id_factory()
        if rule is None:
            return ExpansionResult(occurrences=[self._occurrence(seed, first_id, None, 0, None)])

        frequency = Frequency(rule.frequency)
        period = _PERIODS[frequency]
        end = rule.end_condition
        horizon = seed.start_time + relativedelta(years=self.horizon_years)

        logger.debug(
            "Expanding %r: rule=%s, max_occurrences=%d, horizon=%s",
            seed.title,
            rule.to_rrule_string(),
            self.max_occurrences,
            horizon.isoformat(),
        )

        occurrences: list[Event] = []
        stop_reason = StopReason.END_CONDITION
        k = 0
        while True:
            start = seed.start_time + period(k)

            # Rule's own end condition first; the seed is always kept
            if isinstance(end, AfterCount) and k >= end.count:
                break
            if isinstance(end, OnDate) and k > 0 and start > end.until_datetime:
                break

            if k >= self.max_occurrences:
                stop_reason = StopReason.OCCURRENCE_CAP
                break
            if k > 0 and start > horizon:
                stop_reason = StopReason.HORIZON_CAP
                break

            occurrence_id = first_id if k == 0 else self._id_factory()
            occurrences.append(self._occurrence(seed, occurrence_id, first_id, k, period))
            k += 1

        truncated = stop_reason is not StopReason.END_CONDITION
        if truncated:
            logger.info(
                "Series %s for %r shortened by %s after %d occurrences",
                first_id,
                seed.title,
                stop_reason.value,
                len(occurrences),
            )
        else:
            logger.debug("Series %s expanded to %d occurrences", first_id, len(occurrences))

        return ExpansionResult(occurrences=occurrences, truncated=truncated, stop_reason=stop_reason)

    def _occurrence(
        self,
        seed: EventDraft,
        occurrence_id: str,
        series_id: Optional[str],
        k: int,
        period: Optional[Callable[[int], relativedelta]],
    ) -> Event:
        """Build occurrence ``k`` of the series, copying the seed payload."""
        payload = seed.model_dump(exclude={"id", "series_id", "start_time", "end_time"})
        start = seed.start_time if period is None else seed.start_time + period(k)
        # Duration is kept even when the start date was clamped to a month end
        end = start + (seed.end_time - seed.start_time)
        return Event(id=occurrence_id, series_id=series_id, start_time=start, end_time=end, **payload)
