"""Errors raised by the question lifecycle.

Prepublish rule violations are not raised; they collect on ``Question.errors``.
"""


class QuestionError(Exception):
    """Base class for question lifecycle failures."""


class QuestionNotFound(QuestionError):
    """A well-formed reference points at no question."""


class UntrustedReference(QuestionError):
    """An external question id does not have one of the accepted shapes."""

    def __init__(self, param):
        super().__init__(f"Malformed question reference: {param!r}")
        self.param = param


class LockConflict(QuestionError):
    """Another user holds an unexpired lock on the draft."""

    def __init__(self, message: str, holder_id: int = None, minutes_remaining: int = None):
        super().__init__(message)
        self.holder_id = holder_id
        self.minutes_remaining = minutes_remaining


class LockNotHeld(QuestionError):
    """The caller does not hold the lock, usually because it expired."""


class ImmutableStateViolation(QuestionError):
    """Published questions cannot be changed or destroyed."""


class AccessDenied(QuestionError):
    """The user lacks the permission the action needs."""


class LifecycleError(QuestionError):
    """The action does not apply to the question in its current state."""
