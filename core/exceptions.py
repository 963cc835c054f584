"""
Custom exception classes for robust error handling
"""
from typing import Any, Dict, Optional
from fastapi import status


class BaseCustomException(Exception):
    """Base custom exception class"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class BusinessLogicError(BaseCustomException):
    """Raised when business logic validation fails"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ResourceNotFoundError(BaseCustomException):
    """Raised when a requested resource is not found"""

    def __init__(self, resource: str, identifier: Any, details: Optional[Dict[str, Any]] = None):
        message = f"{resource} with identifier '{identifier}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details
        )


class AuthenticationError(BaseCustomException):
    """Raised when authentication fails"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details
        )


class AuthorizationError(BaseCustomException):
    """Raised when authorization fails"""

    def __init__(self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ConflictError(BaseCustomException):
    """Raised when a resource already exists or conflicts with current state"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class ValidationError(BaseCustomException):
    """Raised when data validation fails"""

    def __init__(self, message: str, field: str = None, details: Optional[Dict[str, Any]] = None):
        if field:
            details = details or {}
            details["field"] = field

        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class RateLimitError(BaseCustomException):
    """Raised when a client exceeds the request budget of an endpoint"""

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details
        )


class GeoProviderError(BaseCustomException):
    """Raised when the geo provider rejects or fails a request"""

    def __init__(self, operation: str, message: str, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details.setdefault("error", f"{operation} failed")
        details.setdefault("message", message)
        super().__init__(
            message=f"{operation} failed: {message}",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class RouteUnavailableError(BaseCustomException):
    """Raised when the geo provider returns no usable route"""

    def __init__(self, reason: str = "", details: Optional[Dict[str, Any]] = None):
        details = details or {}
        if reason:
            details["reason"] = reason
        super().__init__(
            message="No route available",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )
