"""Create an event, or a whole recurring series, in one all-or-nothing step."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from ..exceptions import InvalidRuleError
from ..models import EventDraft, ExpansionResult, RecurrenceRule
from ..store import EventRepository
from .recurrence import RecurrenceExpander

logger = logging.getLogger(__name__)


def _format_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into one readable line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def parse_rule(data: Any) -> Optional[RecurrenceRule]:
    """Parse a recurrence payload; None/empty means a one-off event.

    Raises:
        InvalidRuleError: If the payload is not a valid rule
    """
    if data is None or data == {}:
        return None
    if isinstance(data, RecurrenceRule):
        return data
    try:
        return RecurrenceRule.model_validate(data)
    except ValidationError as e:
        raise InvalidRuleError(_format_validation_error(e)) from e


def parse_request(payload: Mapping[str, Any]) -> tuple[EventDraft, Optional[RecurrenceRule]]:
    """Split an event-creation payload into its seed and optional rule.

    Raises:
        InvalidRuleError: If either part cannot be parsed
    """
    if not isinstance(payload, Mapping):
        raise InvalidRuleError("request body must be a JSON object")

    body = dict(payload)
    rule_data = body.pop("recurrence", None)
    try:
        seed = EventDraft.model_validate(body)
    except ValidationError as e:
        raise InvalidRuleError(_format_validation_error(e)) from e
    return seed, parse_rule(rule_data)


def create_event_series(
    repository: EventRepository,
    seed: EventDraft,
    rule: Optional[RecurrenceRule] = None,
    expander: Optional[RecurrenceExpander] = None,
) -> ExpansionResult:
    """Expand ``seed`` under ``rule`` and persist every occurrence.

    The whole series is validated and generated before anything is written,
    and the repository inserts the batch atomically, so a failed request
    never leaves a partial series behind.

    Raises:
        InvalidRuleError: If the request is rejected
        EventStorageError: If persistence refuses the batch
    """
    expander = expander or RecurrenceExpander()
    result = expander.expand(seed, rule)
    repository.insert_events(result.occurrences)

    logger.info(
        "Created %d event(s) for %r%s%s",
        len(result.occurrences),
        seed.title,
        f" as series {result.series_id} ({rule.describe()})" if rule else "",
        " [shortened]" if result.truncated else "",
    )
    return result
