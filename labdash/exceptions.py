"""
Exceptions raised by the dashboard API client.
"""


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, code: str = None, status_code: int = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class AuthenticationError(APIError):
    """Raised when the session is missing or the credentials are wrong."""
    pass


class PermissionDenied(APIError):
    """Raised when the user lacks the role for an action (admin-only deletes)."""
    pass


class NotFoundError(APIError):
    """Raised when a resource is not found."""
    pass


class ValidationError(APIError):
    """Raised when the server rejects the payload."""
    pass


class ConnectionError(APIError):
    """Raised when unable to reach the API server."""
    pass


class ServerError(APIError):
    """Raised when the server returns a 5xx error."""
    pass
