"""Custom exceptions for the API application."""

from userapi.app.core.utils import format_bytes


class AppException(Exception):
    """Base class for application exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code and error phrase for consistent HTTP
    response handling.
    """
    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str]:
        """Extra response headers for this error."""
        return {}


class PayloadTooLargeError(AppException):
    """Raised when a request body grows past the configured ceiling.

    Maps to HTTP 413 Payload Too Large.
    """
    status_code = 413
    error = "Payload Too Large"

    def __init__(self, limit: int):
        self.limit = limit
        self.limit_description = format_bytes(limit)
        super().__init__(
            f"Request body too large. Maximum size is {self.limit_description}"
        )


class TooManyRequestsError(AppException):
    """Raised when a client exhausts its request quota for the window.

    Maps to HTTP 429 Too Many Requests with a Retry-After hint.
    """
    status_code = 429
    error = "Too Many Requests"

    def __init__(self, retry_after: int, limit: int, reset: int):
        self.retry_after = retry_after
        self.limit = limit
        self.reset = reset
        super().__init__("Too many requests. Please try again later.")

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(self.reset),
        }


class NotFoundError(AppException):
    """Maps to HTTP 404 Not Found."""
    status_code = 404
    error = "Not Found"


class ConflictError(AppException):
    """Maps to HTTP 409 Conflict."""
    status_code = 409
    error = "Conflict"
