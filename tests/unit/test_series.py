"""Unit tests for familycal.domain.series (request parsing and all-or-nothing creation)."""

from datetime import datetime, timezone

import pytest

from familycal.core.clock import to_naive_local
from familycal.domain.recurrence import RecurrenceExpander
from familycal.domain.series import create_event_series, parse_request, parse_rule
from familycal.exceptions import EventStorageError, InvalidRuleError
from familycal.models import AfterCount, Frequency, NoEnd, OnDate, RecurrenceRule, StopReason
from familycal.store import EventQuery, InMemoryEventStore

pytestmark = pytest.mark.unit


@pytest.fixture
def expander(clock, sequential_ids):
    return RecurrenceExpander(id_factory=sequential_ids, time_provider=clock.time)


@pytest.fixture
def store():
    return InMemoryEventStore()


class TestParseRule:
    @pytest.mark.parametrize("empty", [None, {}])
    def test_empty_means_one_off(self, empty):
        assert parse_rule(empty) is None

    def test_camel_case_payload(self):
        rule = parse_rule({"frequency": "monthly", "endCondition": {"type": "after_count", "count": 6}})

        assert rule.frequency is Frequency.MONTHLY
        assert rule.end_condition == AfterCount(count=6)

    def test_end_condition_defaults_to_no_end(self):
        assert isinstance(parse_rule({"frequency": "daily"}).end_condition, NoEnd)

    def test_on_date_payload(self):
        rule = parse_rule({"frequency": "weekly", "end_condition": {"type": "on_date", "until": "2025-06-01"}})

        assert isinstance(rule.end_condition, OnDate)

    def test_rule_instance_passes_through(self):
        rule = RecurrenceRule(frequency="yearly")
        assert parse_rule(rule) is rule

    @pytest.mark.parametrize(
        "payload",
        [
            {"frequency": "hourly"},
            {"frequency": "weekly", "endCondition": {"type": "sometimes"}},
            {"frequency": "weekly", "endCondition": {"type": "after_count"}},
            {"endCondition": {"type": "none"}},
        ],
    )
    def test_invalid_payloads_raise_invalid_rule(self, payload):
        with pytest.raises(InvalidRuleError):
            parse_rule(payload)


class TestParseRequest:
    def test_splits_seed_and_rule(self):
        seed, rule = parse_request(
            {
                "title": "Swim class",
                "startTime": "2025-03-04T16:00:00",
                "endTime": "2025-03-04T17:00:00",
                "memberIds": ["mia"],
                "recurrence": {"frequency": "weekly"},
            }
        )

        assert seed.title == "Swim class"
        assert seed.start_time == datetime(2025, 3, 4, 16, 0)
        assert seed.member_ids == ["mia"]
        assert rule.frequency is Frequency.WEEKLY

    def test_without_recurrence(self):
        _, rule = parse_request(
            {"title": "Dentist", "startTime": "2025-03-04T16:00", "endTime": "2025-03-04T16:30"}
        )
        assert rule is None

    def test_missing_fields_are_reported(self):
        with pytest.raises(InvalidRuleError, match="startTime|start_time"):
            parse_request({"title": "No times", "endTime": "2025-03-04T16:30"})

    def test_non_object_body(self):
        with pytest.raises(InvalidRuleError, match="JSON object"):
            parse_request(["not", "a", "dict"])

    def test_offset_timestamps_become_naive_local(self, store, expander):
        seed, rule = parse_request(
            {
                "title": "Swim class",
                "startTime": "2025-03-04T16:00:00Z",
                "endTime": "2025-03-04T17:00:00+00:00",
                "recurrence": {"frequency": "daily", "endCondition": {"type": "on_date", "until": "2025-03-06"}},
            }
        )

        assert seed.start_time == to_naive_local(datetime(2025, 3, 4, 16, 0, tzinfo=timezone.utc))
        assert seed.start_time.tzinfo is None

        result = create_event_series(store, seed, rule, expander)

        assert store.query_events() == result.occurrences
        assert all(ev.start_time.tzinfo is None for ev in result.occurrences)


class TestCreateEventSeries:
    def test_persists_every_occurrence(self, store, expander, make_draft):
        seed = make_draft(datetime(2025, 3, 3, 9, 0))
        rule = RecurrenceRule(frequency="weekly", end_condition=AfterCount(count=3))

        result = create_event_series(store, seed, rule, expander)

        assert len(store) == 3
        stored = store.query_events(EventQuery(series_id=result.series_id))
        assert [e.id for e in stored] == [e.id for e in result.occurrences]

    def test_one_off_event(self, store, expander, make_draft):
        result = create_event_series(store, make_draft(datetime(2025, 3, 3, 9, 0)), None, expander)

        assert len(store) == 1
        assert result.series_id is None
        assert result.stop_reason is StopReason.END_CONDITION

    def test_rejected_rule_writes_nothing(self, store, expander, make_draft):
        seed = make_draft(datetime(2025, 3, 3, 9, 0))
        rule = RecurrenceRule(frequency="daily", end_condition=AfterCount(count=0))

        with pytest.raises(InvalidRuleError):
            create_event_series(store, seed, rule, expander)

        assert len(store) == 0

    def test_storage_failure_leaves_no_partial_series(self, store, expander, make_draft):
        create_event_series(store, make_draft(datetime(2025, 3, 1, 9, 0), id="evt-3"), None, expander)
        seed = make_draft(datetime(2025, 3, 3, 9, 0))
        rule = RecurrenceRule(frequency="daily", end_condition=AfterCount(count=5))

        # The id factory hands out evt-1.. so occurrence #3 collides with the stored row
        with pytest.raises(EventStorageError):
            create_event_series(store, seed, rule, expander)

        assert [e.id for e in store.query_events()] == ["evt-3"]

    def test_truncated_series_is_still_persisted(self, store, expander, make_draft):
        result = create_event_series(
            store, make_draft(datetime(2025, 3, 3, 9, 0)), RecurrenceRule(frequency="daily"), expander
        )

        assert result.truncated is True
        assert len(store) == 500

    def test_default_expander(self, store, make_draft):
        result = create_event_series(
            store,
            make_draft(datetime(2025, 3, 3, 9, 0)),
            RecurrenceRule(frequency="daily", end_condition=AfterCount(count=2)),
        )

        assert len(result.occurrences) == 2
