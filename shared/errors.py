"""
Shared error handling for the Unit Query gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict


class ErrorResponse(BaseModel):
    """Standard error response format."""

    model_config = ConfigDict(extra="allow")

    error: str
    message: str


class AccessLayerException(Exception):
    """Base exception for gateway services."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.code, message=self.message, **self.details)


class ConfigurationError(AccessLayerException):
    """The service itself is misconfigured and refuses to operate."""

    status_code = 500

    def __init__(self, code: str = "misconfigured", message: str = "Service misconfigured", details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class AuthenticationError(AccessLayerException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, code: str = "authentication_failed", message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class AuthorizationError(AccessLayerException):
    """Authorization-related errors."""

    status_code = 403

    def __init__(self, code: str = "forbidden", message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, code: str = "validation_failed", message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class UpstreamCredentialError(AccessLayerException):
    """The server-held upstream credential is missing or unreadable."""

    status_code = 400

    def __init__(self, message: str = "Upstream credential unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("missing_token", message, details)


class ExternalServiceError(AccessLayerException):
    """External service errors."""

    status_code = 502

    def __init__(
        self,
        code: str,
        message: str = "External service error",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(code, message, details, status_code=status_code)
