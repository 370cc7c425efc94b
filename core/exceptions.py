"""
Service-layer exceptions.

Services raise these; route handlers turn them into HTTP errors with
`to_http_exception()`.
"""

from fastapi import HTTPException


class ServiceError(Exception):
    """Base exception for service layer errors."""

    status_code = 400

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class ValidationError(ServiceError):
    """Raised when input fails a business rule."""
    status_code = 400


class AuthenticationError(ServiceError):
    """Raised when credentials or tokens are rejected."""
    status_code = 401


class AuthorizationError(ServiceError):
    """Raised when user is not authorized for an operation."""
    status_code = 403


class NotFoundError(ServiceError):
    """Raised when a requested entity is not found."""
    status_code = 404


class ConflictError(ServiceError):
    """Raised when operation conflicts with current state."""
    status_code = 409
