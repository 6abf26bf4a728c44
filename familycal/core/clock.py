"""Clock and timestamp helpers for familycal.

All scheduling arithmetic uses naive local timestamps. Aware values coming
from clients are converted to local time and stripped of tzinfo.
"""

from __future__ import annotations

import datetime
import logging
import os
from typing import Any

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "FAMILYCAL_TEST_TIME"


def to_naive_local(dt: datetime.datetime) -> datetime.datetime:
    """Return ``dt`` as a naive local datetime."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


class TimeProvider:
    """Provides the current local time, overridable for tests."""

    def now(self) -> datetime.datetime:
        """Return the current naive local time.

        Can be overridden via the FAMILYCAL_TEST_TIME environment variable
        (ISO 8601, e.g. "2025-03-03T08:55:00").
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                return to_naive_local(date_parser.isoparse(test_time))
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now()


_time_provider = TimeProvider()


def now_local() -> datetime.datetime:
    """Get the current naive local time (convenience function)."""
    return _time_provider.now()


def coerce_timestamp(value: Any) -> datetime.datetime | None:
    """Coerce a datetime, date or string into a naive local datetime.

    Returns None for missing or unparsable values instead of raising, so a
    single malformed row can be skipped by the caller.
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return to_naive_local(value)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_naive_local(date_parser.isoparse(text))
        except (ValueError, OverflowError):
            return None
    return None
