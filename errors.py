class HabitAIError(Exception):
    """Base class for errors raised by the data-access modules."""


class NotFoundError(HabitAIError):
    """The requested document does not exist (or is not visible to the caller)."""


class PermissionDeniedError(HabitAIError):
    """The caller is not allowed to change the requested document."""
