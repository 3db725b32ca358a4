"""
Onboarding error types.

None of these should ever take the app down. Hosts either treat them as no-ops
(NoPriorStepError), recover with a default (MalformedPersistedValueError), or
report them as a rejected request (TerminalStepError, StaleStepError,
EditInProgressError).
"""


class OnboardingError(Exception):
    """Base class for onboarding core errors."""


class TerminalStepError(OnboardingError):
    """advance() called on the last step. Callers should route to completion instead."""


class NoPriorStepError(OnboardingError):
    """retreat() called with nothing left in history."""


class StaleStepError(OnboardingError):
    """advance() called for a step that is no longer current (double tap)."""

    def __init__(self, expected: str, current: str):
        self.expected = expected
        self.current = current
        super().__init__(f"Advance for '{expected}' rejected, current step is '{current}'")


class EditInProgressError(OnboardingError):
    """advance() called while a step is open from settings. Use finish_editing()."""


class MalformedPersistedValueError(OnboardingError):
    """A stored settings value could not be parsed into the expected type."""

    def __init__(self, key: str, raw: str, reason: str = ""):
        self.key = key
        self.raw = raw
        message = f"Malformed value for '{key}': {raw!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class InvalidAnswerError(OnboardingError, ValueError):
    """An answer does not fit the step's question descriptor."""
