"""
Domain errors raised by the booking workflow and the routers.

Each error carries the HTTP status it maps to; the message is surfaced
verbatim to the caller by :mod:`roombook.error_handlers`.
"""


class DomainError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(DomainError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(DomainError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(DomainError):
    status_code = 404
    default_message = "Not found"


class ValidationError(DomainError):
    status_code = 400
    default_message = "Invalid request data"


class InvalidRange(ValidationError):
    default_message = "End time must be after start time"


class Conflict(DomainError):
    status_code = 409
    default_message = "Conflict"
