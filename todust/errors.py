class TodustError(Exception):
    """Base exception for todust domain errors."""

    pass


class NotFoundError(TodustError):
    """Raised when no entry matches the given identifier."""

    pass


class AmbiguousIdError(TodustError):
    """Raised when a short id matches more than one entry."""

    pass


class InvalidProjectError(TodustError):
    """Raised when a project name is empty or blank."""

    pass


class StoreUnavailableError(TodustError):
    """Raised when the entry store cannot be read or written."""

    pass


class ConstraintViolationError(TodustError):
    """Raised when the store rejects a write (duplicate uuid, schema check)."""

    pass


class MigrationError(TodustError):
    """Raised when a database migration fails."""

    pass
