"""Typed failures raised by the auth core and their transport categories."""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    conflict = "conflict"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    not_found = "not_found"
    validation = "validation"
    internal = "internal"


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


class AuthServiceError(Exception):
    """Base class for domain failures surfaced to the transport layer."""

    code = "INTERNAL_SERVER_ERROR"
    category = ErrorCategory.internal
    default_message = "An unexpected error occurred. Please try again later."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateEmail(AuthServiceError):
    code = "USER_ALREADY_EXISTS"
    category = ErrorCategory.conflict
    default_message = "User with this email already exists"


class DuplicatePhone(AuthServiceError):
    code = "PHONE_ALREADY_EXISTS"
    category = ErrorCategory.conflict
    default_message = "Phone number already in use"


class InvalidCredentials(AuthServiceError):
    # Shared by unknown-email and wrong-password paths.
    code = "INVALID_CREDENTIALS"
    category = ErrorCategory.unauthorized
    default_message = "Invalid email or password"


class AccountDeactivated(AuthServiceError):
    code = "ACCOUNT_DEACTIVATED"
    category = ErrorCategory.forbidden
    default_message = "Account is deactivated. Please contact support."


class InvalidToken(AuthServiceError):
    code = "INVALID_TOKEN"
    category = ErrorCategory.unauthorized
    default_message = "Invalid or expired token"


class NotFound(AuthServiceError):
    code = "USER_NOT_FOUND"
    category = ErrorCategory.not_found
    default_message = "User not found"


class ValidationError(AuthServiceError):
    """Malformed input; ``errors`` maps each offending field to a message."""

    code = "VALIDATION_ERROR"
    category = ErrorCategory.validation
    default_message = "Validation failed"

    def __init__(self, errors: dict[str, str], message: str | None = None) -> None:
        self.errors = dict(errors)
        super().__init__(message)


class PersistenceError(AuthServiceError):
    """The account store failed for reasons unrelated to the request."""


class UniquenessViolation(Exception):
    """Raised by an account store when ``save`` breaks a unique constraint."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"unique constraint violated on {field}")


class TokenError(Exception):
    """Base class for token decoding failures."""


class MalformedToken(TokenError):
    pass


class BadSignature(TokenError):
    pass
