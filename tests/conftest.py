"""Shared fixtures for familycal tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest

from familycal.models import EventDraft


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests that exercise the HTTP app end to end")
    config.addinivalue_line("markers", "smoke: boot-level sanity checks")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Keep FAMILYCAL_* environment overrides from leaking between tests."""
    for name in ("FAMILYCAL_TEST_TIME", "FAMILYCAL_DEBUG", "FAMILYCAL_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def fixed_now() -> datetime:
    """A Monday morning used as "now" across scheduling tests."""
    return datetime(2025, 3, 3, 8, 0)


@pytest.fixture
def clock(fixed_now: datetime) -> SimpleNamespace:
    """Mutable clock: set ``clock.now`` and pass ``clock.time`` as time_provider."""
    state = SimpleNamespace(now=fixed_now)
    state.time = lambda: state.now
    return state


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object with the default scheduling values."""
    return SimpleNamespace(
        lead_time_minutes=10,
        evaluation_interval_seconds=30,
        cleanup_interval_seconds=300,
        max_occurrences=500,
        horizon_years=2,
        surface_all_due=True,
    )


@pytest.fixture
def make_draft() -> Callable[..., EventDraft]:
    """Factory for seed events; one-hour duration unless ``end`` is given."""

    def _make(start: datetime, end: datetime | None = None, **fields: Any) -> EventDraft:
        fields.setdefault("title", "Piano lesson")
        return EventDraft(
            start_time=start,
            end_time=end or start + timedelta(hours=1),
            **fields,
        )

    return _make


@pytest.fixture
def sequential_ids() -> Callable[[], str]:
    """Deterministic id factory: evt-1, evt-2, ..."""
    counter = iter(range(1, 1_000_000))
    return lambda: f"evt-{next(counter)}"
