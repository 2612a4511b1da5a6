"""Domain errors raised by the progress core.

All of them are local to one operation and recoverable by the caller;
the HTTP layer maps each kind to a status code.
"""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for every error the progress core raises."""

    kind = "progress_error"


class ValidationError(ProgressError):
    """Malformed template, roster, or field value."""

    kind = "validation_error"


class NotFoundError(ProgressError):
    """Referenced template, session, enrollment, or component is unknown."""

    kind = "not_found"


class InvalidTransitionError(ProgressError):
    """Requested status change breaks the progress state machine."""

    kind = "invalid_transition"


class AttemptsExceededError(ProgressError):
    """Score submitted after every allowed attempt was consumed."""

    kind = "attempts_exceeded"
