"""
Custom Exceptions for the Studio Membership backend

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class StudioMembershipError(Exception):
    """Base exception for all Studio Membership errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(StudioMembershipError):
    """Raised when input validation fails."""
    pass


class DatabaseError(StudioMembershipError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    pass


class DuplicateError(DatabaseError):
    """Raised when attempting to create a duplicate resource."""
    pass


class InvalidStateError(StudioMembershipError):
    """Raised when a subscription transition has no open period to act on."""

    def __init__(
        self,
        message: str,
        subscription_id: Optional[int] = None,
        expected_status: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details: Dict[str, Any] = {}
        if subscription_id is not None:
            details["subscription_id"] = subscription_id
        if expected_status:
            details["expected_status"] = expected_status
        super().__init__(message, details, original_error)
