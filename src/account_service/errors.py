"""Exceptions raised by the account service core.

Each exception carries the HTTP status it maps to and a short,
machine-readable ``reason`` string. Driver and network errors are caught at
the store and image-host boundaries and re-raised as one of these.
"""

from __future__ import annotations

from enum import Enum


class AccountServiceError(RuntimeError):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    reason: str = "internal_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.reason.replace("_", " "))

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(AccountServiceError):
    """Malformed or missing input."""

    status_code = 400
    reason = "validation_error"


class NoOp(ValidationError):
    """An update request carried no non-empty field."""

    reason = "no_valid_fields"


class InvalidAmount(ValidationError):
    """A credit amount outside the accepted range."""

    reason = "invalid_amount"


class Unauthorized(AccountServiceError):
    """Bad credentials."""

    status_code = 401
    reason = "unauthorized"


class AuthErrorKind(str, Enum):
    MALFORMED = "malformed"
    EXPIRED = "expired"
    MISSING_CLAIM = "missing_claim"


class AuthError(Unauthorized):
    """A bearer token failed verification."""

    def __init__(self, kind: AuthErrorKind, message: str | None = None) -> None:
        self.kind = kind
        super().__init__(message or f"token {kind.value.replace('_', ' ')}")

    @property
    def reason(self) -> str:  # type: ignore[override]
        return f"token_{self.kind.value}"


class InsufficientCredits(AccountServiceError):
    status_code = 402
    reason = "insufficient_credits"


class NotFound(AccountServiceError):
    status_code = 404
    reason = "not_found"


class Conflict(AccountServiceError):
    """An account with the same email already exists."""

    status_code = 409
    reason = "conflict"


class StoreUnavailable(AccountServiceError):
    status_code = 500
    reason = "store_unavailable"


class StoreTimeout(AccountServiceError):
    status_code = 502
    reason = "store_timeout"


class HashingError(AccountServiceError):
    status_code = 500
    reason = "hashing_error"
