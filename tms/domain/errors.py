"""Domain errors raised by the scheduling services.

Each error carries the HTTP status the API layer answers with, so routes never
have to translate them one by one.
"""

from __future__ import annotations


class SchedulingError(Exception):
    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidInput(SchedulingError):
    """Missing field, inverted interval or unknown enum value."""

    status_code = 400


class Forbidden(SchedulingError):
    """The caller is not allowed to perform this action (creator-only etc.)."""

    status_code = 403


class NotFound(SchedulingError):
    status_code = 404


class StateViolation(SchedulingError):
    """The target is in a state that rejects the requested transition."""

    status_code = 409


class ConcurrentModification(StateViolation):
    """The document changed between read and write."""
