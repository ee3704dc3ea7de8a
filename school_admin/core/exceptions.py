"""Error taxonomy shared by the stores, the auth gates and the HTTP layer.

Every error carries a short ``error`` title and a human readable ``message``;
``to_dict`` produces the ``{"error", "message"}`` body returned to clients.
"""


class SchoolAdminError(Exception):
    """Base exception for all application errors."""

    status_code = 500
    default_error = "Internal error"

    def __init__(self, message: str, error: str | None = None):
        super().__init__(message)
        self.message = message
        self.error = error or self.default_error

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message}


class ValidationError(SchoolAdminError):
    """Raised when the caller supplied an empty or malformed request."""

    status_code = 400
    default_error = "Validation failed"


class NotFoundError(SchoolAdminError):
    """Raised when a record addressed by id does not exist."""

    status_code = 404
    default_error = "Not found"


class DuplicateKeyError(SchoolAdminError):
    """Raised when a write violates a unique constraint."""

    status_code = 409
    default_error = "Duplicate record"


class DatabaseConnectionError(SchoolAdminError):
    """Raised when no pooled connection could be acquired in time.

    Transient: callers may retry with backoff.
    """

    status_code = 503
    default_error = "Database connection failed"


class QueryError(SchoolAdminError):
    """Raised for any other failure reported by the database."""

    status_code = 500
    default_error = "Database error"


class AuthenticationError(SchoolAdminError):
    """Raised when a request cannot be tied to an active identity."""

    status_code = 401
    default_error = "Authentication required"

    def __init__(self, message: str, error: str | None = None, reason: str = "invalid"):
        super().__init__(message, error)
        self.reason = reason


class AuthorizationError(SchoolAdminError):
    """Raised when an identity lacks permission for an action."""

    status_code = 403
    default_error = "Access forbidden"


class InvalidPasswordError(AuthorizationError):
    """Raised when the current password given on a password change is wrong."""

    status_code = 400
    default_error = "Invalid password"
