from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "VALIDATION_ERROR"


class MalformedContext(ValidationError):
    """Raw class parameters cannot be normalized into a ClassContext."""

    code = "MALFORMED_CONTEXT"


class InvariantViolation(ValidationError):
    """A write would break a ledger or enrollment invariant; nothing was written."""

    code = "INVARIANT_VIOLATION"


class HolidayDate(ValidationError):
    code = "HOLIDAY_DATE"


class NotFound(DomainError):
    code = "NOT_FOUND"


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    code = "FORBIDDEN"


class Unauthorized(AuthorizationError):
    """Binding validator denial."""

    code = "UNAUTHORIZED"


class DuplicateEntry(DomainError):
    """Store-level uniqueness constraint rejected an insert."""

    code = "DUPLICATE_ENTRY"


class EditWindowExpired(DomainError):
    code = "EDIT_WINDOW_EXPIRED"
