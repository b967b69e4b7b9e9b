class ProgramError(Exception):
    """Base class for program lifecycle errors; ``message`` is shown to the user."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidStatusTransition(ProgramError):
    """Raised when a status change is not an allowed forward move."""

    def __init__(self, current, target, allowed=()):
        self.current = current
        self.target = target
        self.allowed = list(allowed)
        allowed_text = ', '.join(self.allowed) if self.allowed else 'none'
        super().__init__(
            f"Cannot change status from '{current}' to '{target}'. "
            f"Allowed from '{current}': {allowed_text}"
        )


class SeriesError(ProgramError):
    """Raised when a version is requested for a program that is not a series master."""


class DepartmentResolutionError(ProgramError):
    """Raised when no owning department can be found for a new program."""


class LegacyParticipantError(ProgramError):
    """Raised when an operation needs a structured participant but the entry has none."""


class ParticipantNotFound(ProgramError):
    status_code = 404
