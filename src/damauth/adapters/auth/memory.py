"""In-memory CredentialStore for local development and tests."""

import asyncio
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from damauth.core.auth.types import (
    OneTimeTokenKind,
    OneTimeTokenRecord,
    RefreshTokenRecord,
    User,
)
from damauth.core.exceptions import Conflict


class InMemoryCredentialStore:
    """Credential store backed by dictionaries.

    Compare-and-set operations (revocation, one-time token consumption) run
    under a single ``asyncio.Lock`` so concurrent callers see exactly one
    winner, matching the conditional UPDATE of the PostgreSQL store.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._users: dict[UUID, User] = {}
        self._refresh_tokens: dict[str, RefreshTokenRecord] = {}
        self._one_time_tokens: dict[OneTimeTokenKind, dict[str, OneTimeTokenRecord]] = {
            kind: {} for kind in OneTimeTokenKind
        }
        self._lock = asyncio.Lock()

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        return next((u for u in self._users.values() if u.email == email), None)

    async def create_user(self, email: str, password_hash: str, username: str) -> User:
        """Create a new unverified user."""
        async with self._lock:
            if any(u.email == email for u in self._users.values()):
                raise Conflict("Email already registered")
            user = User(
                id=uuid4(),
                email=email,
                password_hash=password_hash,
                username=username,
                created_at=datetime.now(UTC),
            )
            self._users[user.id] = user
        return user

    async def add_user(self, user: User) -> User:
        """Insert a fully formed user, e.g. a fixture with an organization."""
        self._users[user.id] = user
        return user

    async def update_user(self, user_id: UUID, **fields: Any) -> User | None:
        """Update user fields."""
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            updated = user.model_copy(update={**fields, "updated_at": datetime.now(UTC)})
            self._users[user_id] = updated
        return updated

    # Refresh tokens
    async def create_refresh_token(
        self, token_hash: str, user_id: UUID, expires_at: datetime
    ) -> RefreshTokenRecord:
        """Persist a new refresh token."""
        record = RefreshTokenRecord(
            id=uuid4(),
            token_hash=token_hash,
            user_id=user_id,
            expires_at=expires_at,
            created_at=datetime.now(UTC),
        )
        self._refresh_tokens[token_hash] = record
        return record

    async def get_refresh_token(self, token_hash: str) -> RefreshTokenRecord | None:
        """Get refresh token record by hash."""
        return self._refresh_tokens.get(token_hash)

    async def revoke_refresh_token(self, token_hash: str) -> bool:
        """Revoke a token if it is still live. True only for the winning call."""
        async with self._lock:
            record = self._refresh_tokens.get(token_hash)
            if record is None or record.revoked:
                return False
            self._refresh_tokens[token_hash] = record.model_copy(update={"revoked": True})
            return True

    async def revoke_all_user_refresh_tokens(self, user_id: UUID) -> int:
        """Revoke every live refresh token of a user."""
        async with self._lock:
            live = [
                r for r in self._refresh_tokens.values() if r.user_id == user_id and not r.revoked
            ]
            for record in live:
                self._refresh_tokens[record.token_hash] = record.model_copy(
                    update={"revoked": True}
                )
            return len(live)

    # Email verification / password reset tokens
    async def create_one_time_token(
        self,
        kind: OneTimeTokenKind,
        token_hash: str,
        user_id: UUID,
        expires_at: datetime,
    ) -> OneTimeTokenRecord:
        """Persist a single-use token, replacing the user's unused ones of this kind."""
        async with self._lock:
            tokens = self._one_time_tokens[kind]
            for key in [k for k, r in tokens.items() if r.user_id == user_id and not r.is_used]:
                del tokens[key]
            record = OneTimeTokenRecord(
                id=uuid4(),
                kind=kind,
                token_hash=token_hash,
                user_id=user_id,
                expires_at=expires_at,
                created_at=datetime.now(UTC),
            )
            tokens[token_hash] = record
        return record

    async def get_one_time_token(
        self, kind: OneTimeTokenKind, token_hash: str
    ) -> OneTimeTokenRecord | None:
        """Get single-use token by hash."""
        return self._one_time_tokens[kind].get(token_hash)

    async def mark_one_time_token_used(self, kind: OneTimeTokenKind, token_id: UUID) -> bool:
        """Mark a token used. True only if it was still unused."""
        async with self._lock:
            tokens = self._one_time_tokens[kind]
            for key, record in tokens.items():
                if record.id == token_id:
                    if record.is_used:
                        return False
                    tokens[key] = record.model_copy(update={"is_used": True})
                    return True
            return False
