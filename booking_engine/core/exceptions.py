# booking_engine/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

Every failure the engine reports to a caller is a DomainException subclass
carrying a stable ``code`` and a JSON-safe ``details`` mapping, so a
transport layer can translate them without knowing engine internals.
"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    default_code = "DOMAIN_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "retryable": self.retryable,
        }


class ValidationException(DomainException):
    """Raised when a request is malformed or violates input rules."""

    default_code = "VALIDATION_ERROR"


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    default_code = "NOT_FOUND"


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    default_code = "CONFLICT"


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    default_code = "BUSINESS_RULE_VIOLATION"


class ForbiddenException(DomainException):
    """Raised when the actor lacks permission for an action."""

    default_code = "FORBIDDEN"


class SlotUnavailableException(ConflictException):
    """The requested interval is outside availability or overlaps an active booking."""

    default_code = "SLOT_UNAVAILABLE"

    def __init__(
        self,
        message: str = "Requested time slot is not available",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code, details)


class ResourceBusyException(DomainException):
    """The provider's reservation lock could not be acquired within the retry budget."""

    default_code = "RESOURCE_BUSY"
    retryable = True

    def __init__(
        self,
        message: str = "Provider is busy processing another reservation, please retry",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code, details)


class InvalidStateException(BusinessRuleException):
    """The booking's current status does not allow the requested transition."""

    default_code = "INVALID_STATE"


class ServiceException(DomainException):
    """Raised when a service operation fails unexpectedly."""

    default_code = "SERVICE_ERROR"


class RepositoryException(Exception):
    """Raised when a data access operation fails."""
