"""Core domain - Pure business logic, storage reached only through protocols."""

from .exceptions import (
    AccountDeactivated,
    AlreadyUsed,
    AlreadyVerified,
    ConfigurationError,
    Conflict,
    DomainError,
    EmailNotVerified,
    Expired,
    Forbidden,
    InvalidCredentials,
    InvalidToken,
    InvalidTokenType,
    MailDispatchError,
    NotFound,
    PersistenceError,
    ReuseDetected,
    TokenError,
    TokenExpired,
    TokenMalformed,
    Unauthorized,
    ValidationFailed,
)

__all__ = [
    "AccountDeactivated",
    "AlreadyUsed",
    "AlreadyVerified",
    "ConfigurationError",
    "Conflict",
    "DomainError",
    "EmailNotVerified",
    "Expired",
    "Forbidden",
    "InvalidCredentials",
    "InvalidToken",
    "InvalidTokenType",
    "MailDispatchError",
    "NotFound",
    "PersistenceError",
    "ReuseDetected",
    "TokenError",
    "TokenExpired",
    "TokenMalformed",
    "Unauthorized",
    "ValidationFailed",
]
