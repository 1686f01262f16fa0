"""Auth domain types and utilities."""

from damauth.core.auth.mail import MailDispatcher
from damauth.core.auth.password import hash_password, verify_password
from damauth.core.auth.repository import CredentialStore
from damauth.core.auth.service import AuthService
from damauth.core.auth.tokens import TokenEngine, hash_token, is_token_expired
from damauth.core.auth.types import (
    AccessTokenClaims,
    LoginResult,
    OneTimeTokenKind,
    OneTimeTokenRecord,
    PublicUser,
    RefreshTokenClaims,
    RefreshTokenRecord,
    TokenPair,
    User,
)

__all__ = [
    "AccessTokenClaims",
    "AuthService",
    "CredentialStore",
    "LoginResult",
    "MailDispatcher",
    "OneTimeTokenKind",
    "OneTimeTokenRecord",
    "PublicUser",
    "RefreshTokenClaims",
    "RefreshTokenRecord",
    "TokenEngine",
    "TokenPair",
    "User",
    "hash_password",
    "hash_token",
    "is_token_expired",
    "verify_password",
]
