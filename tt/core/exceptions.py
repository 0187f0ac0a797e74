"""
Error taxonomy shared by the store, the list translator and the HTTP layer.

Every error carries a stable ``code`` and the HTTP ``status`` it maps to, so
the exception handlers in ``tt.main`` only format, never reinterpret.
"""

from typing import Optional


class TTError(Exception):
    """Base error for tt."""

    code = "INTERNAL_ERROR"
    status = 500

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        self.message = message or self.__class__.default_message()
        self.details = details or {}
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.__doc__.strip().splitlines()[0] if cls.__doc__ else cls.__name__


# Validation errors (rejected before the store is touched)
class ValidationError(TTError):
    """Invalid request."""

    code = "VALIDATION_ERROR"
    status = 400


class BadThingsType(ValidationError):
    """Invalid things type."""

    code = "BAD_THINGS_TYPE"


class BadOrderBy(ValidationError):
    """Invalid order."""

    code = "BAD_ORDER_BY"


class BadOrderDirection(ValidationError):
    """Invalid direction."""

    code = "BAD_ORDER_DIRECTION"


# Integrity errors
class IntegrityError(TTError):
    """Constraint violated."""

    code = "INTEGRITY_ERROR"
    status = 409


class DuplicateName(IntegrityError):
    """A user with that name already exists."""

    code = "DUPLICATE_NAME"


class DuplicateEmail(IntegrityError):
    """A user with that email already exists."""

    code = "DUPLICATE_EMAIL"


class NoSuchUser(IntegrityError):
    """No user found with that name."""

    code = "NO_SUCH_USER"
    status = 400


# Infrastructure errors
class StoreUnavailable(TTError):
    """The database could not be reached."""

    code = "STORE_UNAVAILABLE"
    status = 503


class MissingDatabaseConfig(TTError):
    """Missing required database settings."""

    code = "MISSING_DATABASE_CONFIG"


class BroadcasterClosed(TTError):
    """The broadcaster has been shut down."""

    code = "BROADCASTER_CLOSED"


class BadServerUrl(TTError):
    """Server URL must be host:port."""

    code = "BAD_SERVER_URL"
