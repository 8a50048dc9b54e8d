"""Domain-specific exceptions.

These exceptions represent business rule violations and domain errors.
They should be caught and handled by the application layer.
"""

from __future__ import annotations

from enum import Enum


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationCode(str, Enum):
    """Classified reasons a submitted bookmark is rejected."""

    MISSING_TITLE = "missing_title"
    MISSING_URL = "missing_url"
    INVALID_FORMAT = "invalid_format"
    NOT_PUBLIC_HOST = "not_public_host"


VALIDATION_MESSAGES: dict[ValidationCode, str] = {
    ValidationCode.MISSING_TITLE: "Please enter a title",
    ValidationCode.MISSING_URL: "Please enter a URL, e.g. google.com",
    ValidationCode.INVALID_FORMAT: "Enter a valid URL, e.g. google.com",
    ValidationCode.NOT_PUBLIC_HOST: "Please enter a real website URL",
}


class BookmarkValidationError(DomainException):
    """Raised when a submitted title or URL fails validation.

    Field-scoped and recovered locally: the user fixes the input and resubmits.
    """

    def __init__(self, code: ValidationCode, field: str, details: dict | None = None) -> None:
        super().__init__(VALIDATION_MESSAGES[code], details)
        self.code = code
        self.field = field


class PersistenceError(DomainException):
    """Raised when the persistence collaborator fails a create, list or delete call."""

    def __init__(self, message: str, operation: str, details: dict | None = None) -> None:
        super().__init__(message, details)
        self.operation = operation


class ChannelError(DomainException):
    """Raised when the push channel reports a subscription failure."""

    pass


class InvalidStateTransitionError(DomainException):
    """Raised when an invalid state transition is attempted."""

    pass


class ResourceNotFoundError(DomainException):
    """Raised when a requested resource does not exist."""

    pass
