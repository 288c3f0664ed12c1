"""Error taxonomy shared by the ticket, account and HTTP layers.

Each error carries the HTTP status the API boundary answers with. The core
raises these and never retries; translation into a response happens only in
the exception handlers registered by :func:`app.main.create_app`.
"""

from __future__ import annotations


class HelpdeskError(RuntimeError):
    """Base error for every failure the API reports to clients."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(HelpdeskError):
    """Raised when input is missing or malformed."""

    status_code = 400
    default_message = "Invalid request"


class InvalidTicketTransitionError(ValidationError):
    """Raised when a status change does not follow the ticket lifecycle."""

    default_message = "Invalid ticket status transition"


class AuthenticationError(HelpdeskError):
    """Raised when the caller cannot be identified."""

    status_code = 401
    default_message = "Not authenticated"


class AuthorizationError(HelpdeskError):
    """Raised when the caller's role may not perform an operation."""

    status_code = 403
    default_message = "not authorized to perform this action"


class NotFoundError(HelpdeskError):
    """Raised when a requested record does not exist."""

    status_code = 404
    default_message = "Not found"


class TicketNotFoundError(NotFoundError):
    """Raised when an operation targets a non-existent ticket."""

    default_message = "Ticket not found"


class ConflictError(HelpdeskError):
    """Raised when a unique record already exists."""

    status_code = 400
    default_message = "Resource already exists"
