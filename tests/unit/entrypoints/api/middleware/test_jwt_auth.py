"""Unit tests for JWT authentication middleware."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from damauth.adapters.auth.memory import InMemoryCredentialStore
from damauth.core.auth.tokens import TokenEngine
from damauth.core.auth.types import User
from damauth.core.exceptions import AccountDeactivated, TokenError, Unauthorized
from damauth.entrypoints.api.middleware.jwt_auth import (
    ACCESS_TOKEN_COOKIE,
    AuthContext,
    authenticate,
)
from fastapi.security import HTTPAuthorizationCredentials


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestAuthenticate:
    """Tests for authenticate."""

    @pytest.fixture
    def mock_request(self) -> MagicMock:
        """Return a mock request without cookies."""
        request = MagicMock()
        request.cookies = {}
        return request

    async def test_missing_token(
        self,
        mock_request: MagicMock,
        token_engine: TokenEngine,
        store: InMemoryCredentialStore,
    ) -> None:
        """Test that a request without a token raises 401."""
        with pytest.raises(Unauthorized) as exc_info:
            await authenticate(mock_request, token_engine, store, credentials=None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Access token not provided"

    async def test_valid_bearer_token(
        self,
        mock_request: MagicMock,
        token_engine: TokenEngine,
        store: InMemoryCredentialStore,
        make_user: Callable[..., User],
    ) -> None:
        """Test that a valid token yields the user and is stored on the request."""
        user = await store.add_user(make_user())
        token = token_engine.issue_access_token(user.id, user.email)

        context = await authenticate(mock_request, token_engine, store, _bearer(token))

        assert isinstance(context, AuthContext)
        assert context.user_id == user.id
        assert context.organization_id == user.organization_id
        assert not hasattr(context.user, "password_hash")
        assert mock_request.state.user == context

    async def test_cookie_fallback(
        self,
        mock_request: MagicMock,
        token_engine: TokenEngine,
        store: InMemoryCredentialStore,
        make_user: Callable[..., User],
    ) -> None:
        """Test that the access_token cookie is used without a header."""
        user = await store.add_user(make_user())
        mock_request.cookies = {
            ACCESS_TOKEN_COOKIE: token_engine.issue_access_token(user.id, user.email)
        }

        context = await authenticate(mock_request, token_engine, store, credentials=None)

        assert context.user_id == user.id

    async def test_refresh_token_rejected(
        self,
        mock_request: MagicMock,
        token_engine: TokenEngine,
        store: InMemoryCredentialStore,
        make_user: Callable[..., User],
    ) -> None:
        """Test that a refresh token cannot authenticate a request."""
        user = await store.add_user(make_user())
        refresh = token_engine.issue_refresh_token(user.id)

        with pytest.raises(TokenError):
            await authenticate(mock_request, token_engine, store, _bearer(refresh))

    async def test_unknown_user(
        self,
        mock_request: MagicMock,
        token_engine: TokenEngine,
        store: InMemoryCredentialStore,
    ) -> None:
        """Test that a token for a deleted user raises 401."""
        token = token_engine.issue_access_token(uuid4(), "gone@example.com")

        with pytest.raises(Unauthorized) as exc_info:
            await authenticate(mock_request, token_engine, store, _bearer(token))

        assert exc_info.value.message == "User not found"

    async def test_deactivated_user(
        self,
        mock_request: MagicMock,
        token_engine: TokenEngine,
        store: InMemoryCredentialStore,
        make_user: Callable[..., User],
    ) -> None:
        """Test that a deactivated user is refused even with a valid token."""
        user = await store.add_user(make_user(is_active=False))
        token = token_engine.issue_access_token(user.id, user.email)

        with pytest.raises(AccountDeactivated) as exc_info:
            await authenticate(mock_request, token_engine, store, _bearer(token))

        assert exc_info.value.status_code == 403
