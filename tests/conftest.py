"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from damauth.adapters.auth.memory import InMemoryCredentialStore
from damauth.core.auth.password import hash_password
from damauth.core.auth.service import AuthService
from damauth.core.auth.tokens import TokenEngine
from damauth.core.auth.types import OneTimeTokenKind, RefreshTokenRecord, User

ACCESS_SECRET = "test-access-secret-with-enough-entropy"  # pragma: allowlist secret
REFRESH_SECRET = "test-refresh-secret-with-enough-entropy"  # pragma: allowlist secret
PASSWORD = "correct_password"  # pragma: allowlist secret
PAST = datetime(2000, 1, 1, tzinfo=UTC)


@pytest.fixture
def token_engine() -> TokenEngine:
    """Create token engine with test secrets."""
    return TokenEngine(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture
def store() -> InMemoryCredentialStore:
    """Create empty in-memory credential store."""
    return InMemoryCredentialStore()


@pytest.fixture
def expire_one_time_token(
    store: InMemoryCredentialStore,
) -> Callable[[OneTimeTokenKind, str], None]:
    """Move a stored single-use token's expiry into the past."""

    def _expire(kind: OneTimeTokenKind, token_hash: str) -> None:
        tokens = store._one_time_tokens[kind]
        tokens[token_hash] = tokens[token_hash].model_copy(update={"expires_at": PAST})

    return _expire


@pytest.fixture
def expire_refresh_token(store: InMemoryCredentialStore) -> Callable[[str], None]:
    """Move a stored refresh token's expiry into the past."""

    def _expire(token_hash: str) -> None:
        tokens = store._refresh_tokens
        tokens[token_hash] = tokens[token_hash].model_copy(update={"expires_at": PAST})

    return _expire


@pytest.fixture
def refresh_tokens_for(
    store: InMemoryCredentialStore,
) -> Callable[[UUID], list[RefreshTokenRecord]]:
    """List a user's stored refresh tokens, oldest first."""

    def _list(user_id: UUID) -> list[RefreshTokenRecord]:
        return sorted(
            (r for r in store._refresh_tokens.values() if r.user_id == user_id),
            key=lambda r: r.created_at,
        )

    return _list


@pytest.fixture
def mailer() -> MagicMock:
    """Create mock mail dispatcher."""
    mock = MagicMock()
    mock.send_verification_email = AsyncMock()
    mock.send_password_reset_email = AsyncMock()
    return mock


@pytest.fixture
def activity() -> MagicMock:
    """Create mock activity sink."""
    mock = MagicMock()
    mock.log_activity = AsyncMock()
    return mock


@pytest.fixture
def auth_service(
    store: InMemoryCredentialStore,
    token_engine: TokenEngine,
    mailer: MagicMock,
    activity: MagicMock,
) -> AuthService:
    """Create auth service over the in-memory store."""
    return AuthService(store, token_engine, mailer, activity)


@pytest.fixture(scope="session")
def password_hash() -> str:
    """Hash of PASSWORD, computed once with the cheapest cost."""
    return hash_password(PASSWORD, rounds=4)


@pytest.fixture
def make_user(password_hash: str) -> Callable[..., User]:
    """Build users with sensible defaults."""

    def _make(**overrides: Any) -> User:
        fields: dict[str, Any] = {
            "id": uuid4(),
            "email": "user@example.com",
            "username": "test_user",
            "password_hash": password_hash,
            "organization_id": uuid4(),
            "is_email_verified": True,
            "is_active": True,
            "created_at": datetime.now(UTC),
        }
        fields.update(overrides)
        return User(**fields)

    return _make
