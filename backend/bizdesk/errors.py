# Overview: Error taxonomy shared by services, routes and the CLI.

"""
Action errors.

Services raise these; the app factory maps each class to an HTTP status
through a single Flask error handler, so routes only deal with the happy path.
Every error carries a human message plus an optional details dict that is
returned to the caller unchanged.
"""


class ActionError(Exception):
    """Base class for expected failures of a business action."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(ActionError):
    """No authenticated user or no tenant bound to the session."""
    status_code = 401


class NotFoundError(ActionError):
    """Record is missing or owned by another tenant."""
    status_code = 404


class ValidationError(ActionError, ValueError):
    """400-level input problem."""
    status_code = 400


class ConflictError(ActionError):
    """409-level uniqueness conflict (e.g., duplicate client phone)."""
    status_code = 409


class InvalidStateError(ActionError):
    """The record's lifecycle state does not allow the operation."""
    status_code = 409


class AlreadyCancelledError(InvalidStateError):
    pass


class InsufficientStockError(InvalidStateError):
    pass


class DependencyFailureError(ActionError):
    """A record the operation depends on has vanished."""
    status_code = 409
