"""Domain-specific exceptions.

Every business-rule failure raised by damauth is a DomainError carrying an
HTTP-style status code and a user-facing message. The HTTP layer renders any
DomainError straight into the error envelope, so the message must never
contain storage or driver details.

Storage adapters catch their own driver failures and re-raise them as
PersistenceError; nothing else in the system needs to know which database
is underneath.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base exception for all damauth business-rule failures.

    Attributes:
        status_code: HTTP status mirrored by the API envelope.
        message: User-facing message.
        errors: Optional list of detail entries (field errors, etc).
    """

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(self, message: str | None = None, errors: list[Any] | None = None) -> None:
        """Initialize DomainError.

        Args:
            message: User-facing message. Falls back to the class default.
            errors: Optional list of error details.
        """
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationFailed(DomainError):
    """Request data or a one-time token failed validation."""

    status_code = 400
    default_message = "Validation failed"


class AlreadyVerified(ValidationFailed):
    """Email address has already been verified."""

    default_message = "Email already verified"


class AlreadyUsed(ValidationFailed):
    """A single-use token has already been consumed."""

    default_message = "Token already used"


class Expired(ValidationFailed):
    """A single-use token is past its expiry window."""

    default_message = "Token has expired. Please request a new one"


class Unauthorized(DomainError):
    """Caller is not authenticated."""

    status_code = 401
    default_message = "Unauthorized"


class InvalidCredentials(Unauthorized):
    """Email/password pair did not match.

    Raised with the same message whether the user is missing or the
    password is wrong, so the response cannot be used to enumerate accounts.
    """

    default_message = "Invalid email or password"


class InvalidToken(Unauthorized):
    """Presented token does not exist."""

    default_message = "Invalid token"


class ReuseDetected(Unauthorized):
    """A revoked refresh token was presented again.

    This is FATAL for the whole session family: every refresh token of the
    user has already been revoked when this is raised. Callers must force a
    fresh login and never retry.
    """

    default_message = "Token reuse detected. Please login again"


class TokenError(Unauthorized):
    """Signed token failed verification."""

    default_message = "Invalid token"


class InvalidTokenType(TokenError):
    """Token verified but carries the wrong ``type`` claim."""

    default_message = "Invalid token type"


class TokenExpired(TokenError):
    """Signed token is past its ``exp`` claim."""

    default_message = "Token expired"


class TokenMalformed(TokenError):
    """Signature mismatch, parse failure or missing claims."""

    default_message = "Malformed token"


class Forbidden(DomainError):
    """Caller is authenticated but not allowed."""

    status_code = 403
    default_message = "Forbidden"


class AccountDeactivated(Forbidden):
    """Account has been deactivated."""

    default_message = "Your account has been deactivated"


class EmailNotVerified(Forbidden):
    """Login attempted before email verification."""

    default_message = "Please verify your email before logging in"


class NotFound(DomainError):
    """Requested entity does not exist."""

    status_code = 404
    default_message = "Not found"


class Conflict(DomainError):
    """Entity with the same unique key already exists."""

    status_code = 409
    default_message = "Conflict"


class PersistenceError(DomainError):
    """Storage or infrastructure failure.

    Wraps any driver error so the original never reaches callers.
    """

    status_code = 500
    default_message = "Database error"


class MailDispatchError(DomainError):
    """Mail could not be delivered.

    State committed before the dispatch attempt is NOT rolled back.
    """

    status_code = 500
    default_message = "Failed to send email"


class ConfigurationError(Exception):
    """Fatal misconfiguration detected at startup.

    Not a DomainError: it stops the process instead of becoming an HTTP
    response.
    """

    pass
