from __future__ import annotations

from .enums import RejectionKind


class DomainError(Exception):
    """Base exception for business rule violations."""

    kind: RejectionKind = RejectionKind.VALIDATION


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    kind = RejectionKind.NOT_FOUND


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""

    kind = RejectionKind.AUTHENTICATION


class AccessDeniedError(DomainError):
    """Raised when a user lacks permission for an action."""

    kind = RejectionKind.ACCESS_DENIED


class InvalidTokenError(DomainError):
    """The presented QR token is unknown or outside its validity window.

    ``reason`` keeps the two cases apart for the HTTP layer only.
    """

    kind = RejectionKind.INVALID_TOKEN

    def __init__(self, message: str, *, reason: str):
        super().__init__(message)
        self.reason = reason


class AlreadyCheckedInError(DomainError):
    kind = RejectionKind.ALREADY_CHECKED_IN


class AlreadyCheckedOutError(DomainError):
    kind = RejectionKind.ALREADY_CHECKED_OUT


class NoOpenSessionError(DomainError):
    kind = RejectionKind.NO_OPEN_SESSION


class StorageError(Exception):
    """Persistence layer failure. Fatal; surfaced to clients as a 5xx."""


class ConflictError(StorageError):
    """A store-level uniqueness constraint rejected the write."""
