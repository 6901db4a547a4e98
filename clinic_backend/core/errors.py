"""Errors raised by the scheduling core.

Routes translate these into HTTP responses; the core itself never retries.
"""


class SchedulingError(Exception):
    """Base class for expected scheduling failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SchedulingError):
    """A slot, service, appointment, patient or professional is missing."""


class ConflictError(SchedulingError):
    """Lost a race for a slot, or the slot is no longer available.

    ``alternatives`` holds nearby open slots offered instead, when they
    could be computed.
    """

    def __init__(self, message: str, alternatives: list | None = None):
        super().__init__(message)
        self.alternatives = alternatives or []


class SchedulingValidationError(SchedulingError):
    """Malformed input or a request that breaks a scheduling rule."""


class UnauthorizedError(SchedulingError):
    """The caller lacks the role or ownership needed for the target."""


class SlotUnavailableError(ConflictError):
    """The requested slot is no longer AVAILABLE."""

    def __init__(self, message: str = 'This time slot is no longer available.', alternatives: list | None = None):
        super().__init__(message, alternatives)
