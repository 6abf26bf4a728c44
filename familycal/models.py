"""Data models for familycal events and recurrence rules."""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from .core.clock import to_naive_local

# Start time reserved for "anytime today" pseudo-events
ANYTIME_HOUR = 23
ANYTIME_MINUTE = 58


class _CamelModel(BaseModel):
    """Base model that speaks camelCase JSON and accepts snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class StopReason(str, Enum):
    """Why a recurrence expansion stopped."""

    END_CONDITION = "end_condition"
    OCCURRENCE_CAP = "occurrence_cap"
    HORIZON_CAP = "horizon_cap"


class EventDraft(_CamelModel):
    """User-authored event payload, before ids are assigned.

    Everything except the two timestamps is copied verbatim onto every
    occurrence and is never interpreted by the scheduling code.
    """

    id: Optional[str] = Field(default=None, description="Pre-allocated id for occurrence #1")
    title: str = Field(..., description="Event title")
    description: Optional[str] = Field(default=None, description="Event details")
    start_time: datetime = Field(..., description="Start timestamp (naive local)")
    end_time: datetime = Field(..., description="End timestamp (naive local)")
    color: Optional[str] = Field(default=None, description="Display color")
    member_ids: list[str] = Field(default_factory=list, description="Associated family members")
    completed: bool = Field(default=False, description="Completion flag")

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def _to_naive_local(cls, value: datetime) -> datetime:
        """Store offset timestamps as naive local time."""
        return to_naive_local(value)

    @property
    def is_anytime(self) -> bool:
        """True for the 23:58 "anytime today" marker."""
        return is_anytime_start(self.start_time)


class Event(EventDraft):
    """A concrete, persisted event row."""

    id: str = Field(..., description="Unique event id")
    series_id: Optional[str] = Field(
        default=None, description="Id of occurrence #1 for recurring series"
    )

    @field_serializer("start_time", "end_time")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize timestamps to ISO format."""
        return dt.isoformat()


class NoEnd(BaseModel):
    """Series bounded only by the safety caps."""

    type: Literal["none"] = "none"


class AfterCount(BaseModel):
    """Series that stops after ``count`` occurrences in total."""

    type: Literal["after_count"] = "after_count"
    count: int


class OnDate(BaseModel):
    """Series that stops after the last occurrence starting on or before ``until``.

    A bare date means "through the end of that day".
    """

    type: Literal["on_date"] = "on_date"
    until: Union[datetime, date]

    @field_validator("until", mode="before")
    @classmethod
    def _parse_date_only(cls, value: object) -> object:
        """Keep "YYYY-MM-DD" strings as dates so they cover the whole day."""
        if isinstance(value, str) and len(value.strip()) == 10:
            return date.fromisoformat(value.strip())
        return value

    @field_validator("until", mode="after")
    @classmethod
    def _until_to_naive_local(cls, value: Union[datetime, date]) -> Union[datetime, date]:
        if isinstance(value, datetime):
            return to_naive_local(value)
        return value

    @property
    def until_datetime(self) -> datetime:
        """Inclusive upper bound as a datetime."""
        if isinstance(self.until, datetime):
            return self.until
        return datetime.combine(self.until, time.max)


EndCondition = Annotated[Union[NoEnd, AfterCount, OnDate], Field(discriminator="type")]

_RRULE_FREQ: dict[Frequency, tuple[str, int]] = {
    Frequency.DAILY: ("DAILY", 1),
    Frequency.WEEKLY: ("WEEKLY", 1),
    Frequency.BIWEEKLY: ("WEEKLY", 2),
    Frequency.MONTHLY: ("MONTHLY", 1),
    Frequency.YEARLY: ("YEARLY", 1),
}


class RecurrenceRule(_CamelModel):
    """How a seed event repeats and when the series ends."""

    frequency: Frequency
    end_condition: EndCondition = Field(default_factory=NoEnd)

    def to_rrule_string(self) -> str:
        """Render the rule as an RFC 5545 RRULE value."""
        freq, interval = _RRULE_FREQ[Frequency(self.frequency)]
        parts = [f"FREQ={freq}"]
        if interval != 1:
            parts.append(f"INTERVAL={interval}")
        end = self.end_condition
        if isinstance(end, AfterCount):
            parts.append(f"COUNT={end.count}")
        elif isinstance(end, OnDate):
            parts.append(f"UNTIL={end.until_datetime.strftime('%Y%m%dT%H%M%S')}")
        return ";".join(parts)

    def describe(self) -> str:
        """Short human-readable summary, e.g. "weekly, 3 times"."""
        label = Frequency(self.frequency).value
        end = self.end_condition
        if isinstance(end, AfterCount):
            return f"{label}, {end.count} time{'s' if end.count != 1 else ''}"
        if isinstance(end, OnDate):
            return f"{label} until {end.until.isoformat()}"
        return label


class ExpansionResult(_CamelModel):
    """Occurrences produced for one seed event, plus truncation status."""

    occurrences: list[Event] = Field(default_factory=list)
    truncated: bool = False
    stop_reason: StopReason = StopReason.END_CONDITION

    @property
    def series_id(self) -> Optional[str]:
        """Series id shared by the occurrences, if any."""
        if not self.occurrences:
            return None
        return self.occurrences[0].series_id


class DueNotification(_CamelModel):
    """A one-shot "event starts soon" signal."""

    event: Event
    minutes_until_start: float
    emitted_at: datetime

    @field_serializer("emitted_at")
    def serialize_emitted_at(self, dt: datetime) -> str:
        """Serialize emission time to ISO format."""
        return dt.isoformat()


def is_anytime_start(start: datetime) -> bool:
    """Return True when ``start`` carries the "anytime today" marker."""
    return start.hour == ANYTIME_HOUR and start.minute == ANYTIME_MINUTE
