"""Token engine: signed JWT credentials and opaque single-use secrets.

All expiry-window policy lives here:

- access tokens: 20 minutes. They cannot be revoked, so the lifetime
  bounds the exposure of a leaked token.
- refresh tokens: 30 days by default (multi-week sessions).
- email verification secrets: 24 hours.
- password reset secrets: 30 minutes (high-value secret sent over email).
"""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import jwt

from damauth.core.auth.types import AccessTokenClaims, RefreshTokenClaims
from damauth.core.exceptions import (
    ConfigurationError,
    InvalidTokenType,
    TokenExpired,
    TokenMalformed,
)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 20
REFRESH_TOKEN_EXPIRE_DAYS = 30
EMAIL_VERIFICATION_EXPIRE_HOURS = 24
PASSWORD_RESET_EXPIRE_MINUTES = 30
OPAQUE_SECRET_BYTES = 32  # 256 bits of entropy

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_token(token: str) -> str:
    """Hash a token for storage.

    SHA-256 is enough here: the tokens carry 256 bits of entropy (or are
    signed JWTs), so precomputation attacks are infeasible.

    Args:
        token: The plaintext token.

    Returns:
        Hex-encoded SHA-256 digest.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def is_token_expired(expires_at: datetime) -> bool:
    """Check if a stored token has expired.

    Args:
        expires_at: The token's expiry timestamp.

    Returns:
        True if the token has expired.
    """
    # Handle timezone-naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return datetime.now(UTC) > expires_at


class TokenEngine:
    """Mints and verifies every credential artifact.

    Stateless apart from the signing secrets, so one instance is shared by
    all concurrent requests.
    """

    def __init__(
        self,
        access_secret: str | None,
        refresh_secret: str | None,
        refresh_token_expiry_days: int = REFRESH_TOKEN_EXPIRE_DAYS,
    ) -> None:
        """Initialize the engine.

        Args:
            access_secret: HMAC secret for access tokens.
            refresh_secret: HMAC secret for refresh tokens.
            refresh_token_expiry_days: Refresh token lifetime in days.

        Raises:
            ConfigurationError: If either secret is missing.
        """
        if not access_secret or not refresh_secret:
            raise ConfigurationError("Token secrets not configured")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.refresh_token_expiry_days = refresh_token_expiry_days or REFRESH_TOKEN_EXPIRE_DAYS

    # Signed tokens

    def issue_access_token(self, user_id: UUID, email: str) -> str:
        """Create a short-lived access token.

        Args:
            user_id: User identifier.
            email: User's email address.

        Returns:
            Encoded JWT string.
        """
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "email": email,
            "type": ACCESS_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)).timestamp()),
            "jti": uuid4().hex,
        }
        return jwt.encode(payload, self._access_secret, algorithm=ALGORITHM)

    def issue_refresh_token(self, user_id: UUID) -> str:
        """Create a long-lived refresh token.

        The ``jti`` claim keeps two tokens minted in the same second distinct,
        which the unique token column relies on.

        Args:
            user_id: User identifier.

        Returns:
            Encoded JWT string.
        """
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "type": REFRESH_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(days=self.refresh_token_expiry_days)).timestamp()),
            "jti": uuid4().hex,
        }
        return jwt.encode(payload, self._refresh_secret, algorithm=ALGORITHM)

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """Verify an access token.

        Raises:
            InvalidTokenType: Token is not an access token.
            TokenExpired: Token is past its expiry.
            TokenMalformed: Signature or parse failure.
        """
        payload = self._decode(token, self._access_secret, ACCESS_TOKEN_TYPE, "Access token")
        try:
            return AccessTokenClaims(user_id=UUID(payload["sub"]), email=payload["email"])
        except (KeyError, ValueError, TypeError):
            raise TokenMalformed("Invalid access token") from None

    def verify_refresh_token(self, token: str) -> RefreshTokenClaims:
        """Verify a refresh token.

        Raises:
            InvalidTokenType: Token is not a refresh token.
            TokenExpired: Token is past its expiry.
            TokenMalformed: Signature or parse failure.
        """
        payload = self._decode(token, self._refresh_secret, REFRESH_TOKEN_TYPE, "Refresh token")
        try:
            return RefreshTokenClaims(user_id=UUID(payload["sub"]))
        except (KeyError, ValueError, TypeError):
            raise TokenMalformed("Invalid refresh token") from None

    def _decode(self, token: str, secret: str, expected_type: str, label: str) -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired(f"{label} expired") from None
        except jwt.InvalidTokenError:
            raise TokenMalformed(f"Invalid {label.lower()}") from None

        if payload.get("type") != expected_type:
            raise InvalidTokenType("Invalid token type")
        return payload

    # Opaque secrets

    def issue_opaque_secret(self) -> str:
        """Generate a single-use secret for email verification or password reset.

        Returns:
            64-character hex string from a CSPRNG.
        """
        return secrets.token_hex(OPAQUE_SECRET_BYTES)

    # Expiry windows

    def refresh_token_expiry(self) -> datetime:
        """UTC expiry for a refresh token issued now."""
        return datetime.now(UTC) + timedelta(days=self.refresh_token_expiry_days)

    def email_verification_expiry(self) -> datetime:
        """UTC expiry for an email verification secret issued now."""
        return datetime.now(UTC) + timedelta(hours=EMAIL_VERIFICATION_EXPIRE_HOURS)

    def password_reset_expiry(self) -> datetime:
        """UTC expiry for a password reset secret issued now."""
        return datetime.now(UTC) + timedelta(minutes=PASSWORD_RESET_EXPIRE_MINUTES)
