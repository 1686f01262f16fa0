"""Auth domain types."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr


class OneTimeTokenKind(str, Enum):
    """Kinds of single-use opaque tokens."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class PublicUser(BaseModel):
    """User data safe to return to callers (no password hash)."""

    id: UUID
    email: EmailStr
    username: str
    organization_id: UUID | None = None
    is_email_verified: bool = False
    email_verified_at: datetime | None = None
    is_active: bool = True
    last_login_at: datetime | None = None
    last_login_ip: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class User(PublicUser):
    """User domain model.

    ``organization_id`` of None marks a super-admin / unaffiliated principal.
    """

    password_hash: str

    def public(self) -> PublicUser:
        """Return a copy without the password hash."""
        return PublicUser(**self.model_dump(exclude={"password_hash"}))


class RefreshTokenRecord(BaseModel):
    """Persisted refresh token. Only the SHA-256 of the token is stored."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    token_hash: str
    user_id: UUID
    expires_at: datetime
    revoked: bool = False
    created_at: datetime


class OneTimeTokenRecord(BaseModel):
    """Persisted email-verification or password-reset token."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    kind: OneTimeTokenKind
    token_hash: str
    user_id: UUID
    expires_at: datetime
    is_used: bool = False
    created_at: datetime


class AccessTokenClaims(BaseModel):
    """Verified claims of an access token."""

    user_id: UUID
    email: str


class RefreshTokenClaims(BaseModel):
    """Verified claims of a refresh token."""

    user_id: UUID


class TokenPair(BaseModel):
    """Access and refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResult(TokenPair):
    """Successful login: user plus both tokens."""

    user: PublicUser
