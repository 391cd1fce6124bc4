"""
Error hierarchy for the roster domain.

Every failure a service can report derives from ``RosterError`` and
carries the HTTP status the API layer answers with.  Validation,
authorization, not-found and conflict errors are raised before any
mutation.  ``ExternalDeliveryError`` is only raised inside the
notifier and is always caught there: a failed e-mail or SMS never
undoes a committed state change.
"""


class RosterError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RosterError, ValueError):
    """Malformed or missing input (unknown action, missing reason...)."""

    status_code = 400


class AuthenticationError(RosterError):
    """No usable actor identity was supplied."""

    status_code = 401


class AuthorizationError(RosterError):
    """The actor may not act on the referenced resource."""

    status_code = 403


class NotFoundError(RosterError, ValueError):
    """A referenced user, service, assignment, swap or availability is absent."""

    status_code = 404


class ConflictError(RosterError, ValueError):
    """The record is already terminal or a uniqueness rule would break."""

    status_code = 409


class ExternalDeliveryError(RosterError):
    """E-mail or SMS delivery failed."""

    status_code = 502
