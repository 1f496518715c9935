"""Error kinds raised by the rental core.

Every error carries a short human-readable ``message`` that the dashboard
shows verbatim in a notification.
"""


class RentalError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RentalError):
    """Malformed or missing input. Raised before the store is touched."""


class NotFound(RentalError):
    pass


class Conflict(RentalError):
    """Uniqueness violation or a delete blocked by dependent rows."""


class AuthError(RentalError):
    pass


class PersistenceError(RentalError):
    """The Supabase store failed or was unreachable."""


class ConfigError(RentalError):
    pass
