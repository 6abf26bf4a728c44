"""Custom exception hierarchy for familycal.

Specific exception types let the API layer map failures onto HTTP status
codes and keep error messages meaningful for the person creating an event.
"""


class FamilyCalError(Exception):
    """Base exception for all familycal errors."""


class InvalidRuleError(FamilyCalError):
    """A recurrence request was rejected before any occurrence was generated.

    Raised when:
    - The frequency value is not recognized
    - The seed event ends before it starts
    - An end condition has a non-positive count or an already-past date
    - The request payload cannot be parsed into a seed event and rule

    Should result in HTTP 400 Bad Request response. Nothing is persisted.
    """


class EventStorageError(FamilyCalError):
    """Persistence refused a batch of event rows.

    Raised when:
    - A row id collides with an existing row
    - The backing store is unavailable

    The batch is never partially written.
    """


class ConfigurationError(FamilyCalError):
    """Configuration values cannot be used to start the application."""
