"""Credential store protocol for auth persistence."""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from damauth.core.auth.types import (
    OneTimeTokenKind,
    OneTimeTokenRecord,
    RefreshTokenRecord,
    User,
)


@runtime_checkable
class CredentialStore(Protocol):
    """Protocol for user and credential persistence.

    Implementations provide actual storage (PostgreSQL, in-memory, etc).
    All token arguments are SHA-256 digests, never raw values.

    Implementations must re-raise any storage failure as
    ``PersistenceError``.
    """

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        ...

    async def create_user(self, email: str, password_hash: str, username: str) -> User:
        """Create a new unverified user."""
        ...

    async def update_user(self, user_id: UUID, **fields: Any) -> User | None:
        """Update the given user columns. Returns None if the user is missing."""
        ...

    # Refresh tokens
    async def create_refresh_token(
        self, token_hash: str, user_id: UUID, expires_at: datetime
    ) -> RefreshTokenRecord:
        """Persist a new refresh token."""
        ...

    async def get_refresh_token(self, token_hash: str) -> RefreshTokenRecord | None:
        """Get refresh token record by hash."""
        ...

    async def revoke_refresh_token(self, token_hash: str) -> bool:
        """Atomically revoke a token if it is not revoked yet.

        Returns:
            True only for the call that flipped ``revoked`` to true.
        """
        ...

    async def revoke_all_user_refresh_tokens(self, user_id: UUID) -> int:
        """Revoke every non-revoked refresh token of a user. Returns the count."""
        ...

    # Email verification / password reset tokens
    async def create_one_time_token(
        self,
        kind: OneTimeTokenKind,
        token_hash: str,
        user_id: UUID,
        expires_at: datetime,
    ) -> OneTimeTokenRecord:
        """Persist a single-use token, deleting the user's prior unused ones of this kind."""
        ...

    async def get_one_time_token(
        self, kind: OneTimeTokenKind, token_hash: str
    ) -> OneTimeTokenRecord | None:
        """Get single-use token by hash."""
        ...

    async def mark_one_time_token_used(self, kind: OneTimeTokenKind, token_id: UUID) -> bool:
        """Atomically mark a token used. True only if it was still unused."""
        ...
