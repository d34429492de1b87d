"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the exception handler in
main.py. The error code in the response envelope is derived from the class
name, so InvalidStatusValueError and IllegalTransitionError reach clients as
distinct codes ("invalidstatusvalue" / "illegaltransition").
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainError):
    """Resource not found (404)."""
    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(DomainError):
    """Validation error (400)."""
    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            message = f"Validation error on {field}: {message}"
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InvalidStatusValueError(DomainError):
    """Status token outside the canonical set (400)."""
    def __init__(self, value, allowed: list[str]):
        message = f"Invalid order status: {value!r}. Allowed: {', '.join(allowed)}"
        super().__init__(
            message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"value": value if isinstance(value, str) else repr(value), "allowed": allowed},
        )


class IllegalTransitionError(DomainError):
    """Recognized status, but the lifecycle forbids the move (409)."""
    def __init__(self, message: str, current_status: str, requested_status: str | None = None,
                 details: dict | None = None):
        merged = {"current_status": current_status, "requested_status": requested_status}
        merged.update(details or {})
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=merged)
        self.current_status = current_status
        self.requested_status = requested_status


class PermissionDeniedError(DomainError):
    """Permission denied (403)."""
    def __init__(self, message: str = "Permission denied", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN, details=details)


class UnauthorizedError(DomainError):
    """Unauthorized access (401)."""
    def __init__(self, message: str = "Unauthorized", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class ConflictError(DomainError):
    """Resource conflict (409)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=details)
