"""Tests for the auth API routes."""

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock
from uuid import UUID

import pytest
from damauth.adapters.auth.memory import InMemoryCredentialStore
from damauth.core.auth.tokens import TokenEngine, hash_token
from damauth.core.auth.types import OneTimeTokenKind, RefreshTokenRecord, User
from damauth.entrypoints.api.app import create_app
from fastapi import FastAPI
from fastapi.testclient import TestClient

PASSWORD = "correct_password"  # pragma: allowlist secret
NEW_PASSWORD = "brand-new-password"  # pragma: allowlist secret


@pytest.fixture
def app(
    token_engine: TokenEngine,
    store: InMemoryCredentialStore,
    mailer: MagicMock,
    activity: MagicMock,
) -> FastAPI:
    """Return the application wired to in-memory collaborators."""
    application = create_app()
    application.state.token_engine = token_engine
    application.state.credential_store = store
    application.state.mailer = mailer
    application.state.activity_sink = activity
    application.state.rbac_repo = MagicMock()
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Return a client that does not run the lifespan."""
    return TestClient(app)


@pytest.fixture
async def user(store: InMemoryCredentialStore, make_user: Callable[..., User]) -> User:
    """Create a verified, active user."""
    return await store.add_user(make_user())


def _login(client: TestClient) -> dict[str, Any]:
    response = client.post(
        "/api/v1/auth/login", json={"email": "user@example.com", "password": PASSWORD}
    )
    assert response.status_code == 200
    return response.json()["data"]


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestEnvelope:
    """Tests for the shared response envelope."""

    def test_health(self, client: TestClient) -> None:
        """Test the health endpoint."""
        response = client.get("/health")

        assert response.json() == {"status": "healthy"}

    def test_validation_errors(self, client: TestClient) -> None:
        """Test invalid bodies become a 400 envelope with field errors."""
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "not-an-email", "password": "short", "username": "a!"},
        )

        body = response.json()
        assert response.status_code == 400
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["status_code"] == 400
        assert {e["field"] for e in body["errors"]} == {"email", "password", "username"}
        assert "timestamp" in body

    def test_password_byte_limit(self, client: TestClient) -> None:
        """Test passwords over 72 bytes are refused before hashing."""
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "new@example.com", "password": "é" * 40, "username": "new_user"},
        )

        assert response.status_code == 400

    def test_unhandled_error(self, app: FastAPI) -> None:
        """Test unexpected exceptions become a generic 500 envelope."""

        @app.get("/boom")
        async def boom() -> None:
            raise RuntimeError("secret internals")

        response = TestClient(app, raise_server_exceptions=False).get("/boom")

        assert response.status_code == 500
        assert response.json()["message"] == "Internal Server Error"
        assert "secret internals" not in response.text


class TestRegistration:
    """Tests for registration and verification routes."""

    def test_register_verify_login(self, client: TestClient, mailer: MagicMock) -> None:
        """Test the full sign-up flow."""
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "New@Example.com", "password": PASSWORD, "username": "new_user"},
        )

        body = response.json()
        assert response.status_code == 201
        assert body["status_code"] == 201
        assert body["data"]["email"] == "new@example.com"
        assert "password_hash" not in body["data"]

        login = client.post(
            "/api/v1/auth/login", json={"email": "new@example.com", "password": PASSWORD}
        )
        assert login.status_code == 403

        _, raw_token = mailer.send_verification_email.call_args.args
        verified = client.get("/api/v1/auth/verify-email", params={"token": raw_token})
        assert verified.status_code == 200
        assert verified.json()["message"] == "Email verified successfully"

        again = client.get("/api/v1/auth/verify-email", params={"token": raw_token})
        assert again.status_code == 400

        login = client.post(
            "/api/v1/auth/login", json={"email": "new@example.com", "password": PASSWORD}
        )
        assert login.status_code == 200

    def test_register_duplicate(self, client: TestClient, user: User) -> None:
        """Test duplicate emails are a 409."""
        response = client.post(
            "/api/v1/auth/register",
            json={"email": user.email, "password": PASSWORD, "username": "other"},
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Email already registered"

    def test_verify_unknown_token(self, client: TestClient) -> None:
        """Test an unknown verification token is a 401."""
        response = client.get("/api/v1/auth/verify-email", params={"token": "f" * 64})

        assert response.status_code == 401

    def test_resend_unknown_email(self, client: TestClient) -> None:
        """Test resend does not reveal whether the account exists."""
        response = client.post(
            "/api/v1/auth/resend-verification", json={"email": "ghost@example.com"}
        )

        assert response.status_code == 200

    def test_resend_verified(self, client: TestClient, user: User) -> None:
        """Test resend for a verified address is a 400."""
        response = client.post("/api/v1/auth/resend-verification", json={"email": user.email})

        assert response.status_code == 400
        assert response.json()["message"] == "Email already verified"


class TestSession:
    """Tests for login, refresh and logout routes."""

    def test_login_sets_cookies(self, client: TestClient, user: User) -> None:
        """Test login returns tokens in the body and as httpOnly cookies."""
        response = client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": PASSWORD}
        )

        data = response.json()["data"]
        assert data["user"]["id"] == str(user.id)
        assert data["access_token"] and data["refresh_token"]
        set_cookie = ", ".join(response.headers.get_list("set-cookie"))
        assert "access_token=" in set_cookie
        assert "refresh_token=" in set_cookie
        assert "HttpOnly" in set_cookie

    def test_login_wrong_password(self, client: TestClient, user: User) -> None:
        """Test a wrong password is a 401 with the generic message."""
        response = client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": "wrong_password"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_me(self, client: TestClient, user: User) -> None:
        """Test the profile endpoint with a bearer token."""
        tokens = _login(client)
        client.cookies.clear()

        response = client.get("/api/v1/auth/me", headers=_bearer(tokens["access_token"]))

        assert response.status_code == 200
        assert response.json()["data"]["username"] == user.username

    def test_update_me(self, client: TestClient, user: User) -> None:
        """Test the username can be changed and is validated."""
        headers = _bearer(_login(client)["access_token"])

        renamed = client.patch("/api/v1/auth/me", headers=headers, json={"username": "renamed"})
        invalid = client.patch("/api/v1/auth/me", headers=headers, json={"username": "a!"})

        assert renamed.status_code == 200
        assert renamed.json()["data"]["username"] == "renamed"
        assert invalid.status_code == 400

    def test_me_without_token(self, client: TestClient) -> None:
        """Test the profile endpoint requires authentication."""
        response = client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["message"] == "Access token not provided"

    def test_refresh_via_cookie_then_reuse(self, client: TestClient, user: User) -> None:
        """Test rotation through the cookie and replay detection through the body."""
        tokens = _login(client)

        rotated = client.post("/api/v1/auth/refresh-token")
        assert rotated.status_code == 200
        assert rotated.json()["data"]["refresh_token"] != tokens["refresh_token"]

        client.cookies.clear()
        replay = client.post(
            "/api/v1/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]}
        )
        assert replay.status_code == 401
        assert replay.json()["message"] == "Token reuse detected. Please login again"

    def test_refresh_without_token(self, client: TestClient) -> None:
        """Test refresh requires a token."""
        response = client.post("/api/v1/auth/refresh-token")

        assert response.status_code == 401
        assert response.json()["message"] == "Refresh token not provided"

    def test_logout_revokes_and_clears(
        self,
        client: TestClient,
        refresh_tokens_for: Callable[[UUID], list[RefreshTokenRecord]],
        user: User,
    ) -> None:
        """Test logout revokes the cookie's refresh token."""
        tokens = _login(client)

        response = client.post("/api/v1/auth/logout")

        assert response.status_code == 200
        assert response.json()["message"] == "Logout successful"
        record = refresh_tokens_for(user.id)[0]
        assert record.token_hash == hash_token(tokens["refresh_token"])
        assert record.revoked is True

    def test_logout_all(self, client: TestClient, user: User) -> None:
        """Test logout-all reports the revoked session count."""
        _login(client)
        tokens = _login(client)
        client.cookies.clear()

        response = client.post(
            "/api/v1/auth/logout-all", headers=_bearer(tokens["access_token"])
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"revoked_sessions": 2}


class TestPasswordRoutes:
    """Tests for password routes."""

    def test_forgot_password_is_uniform(self, client: TestClient, user: User) -> None:
        """Test known and unknown emails get the same answer."""
        known = client.post("/api/v1/auth/forgot-password", json={"email": user.email})
        unknown = client.post(
            "/api/v1/auth/forgot-password", json={"email": "ghost@example.com"}
        )

        assert known.status_code == unknown.status_code == 200
        assert known.json()["message"] == unknown.json()["message"]

    def test_reset_password(
        self,
        client: TestClient,
        store: InMemoryCredentialStore,
        mailer: MagicMock,
        user: User,
    ) -> None:
        """Test the reset token from the mail sets a new password once."""
        client.post("/api/v1/auth/forgot-password", json={"email": user.email})
        _, raw_token = mailer.send_password_reset_email.call_args.args

        response = client.post(
            "/api/v1/auth/reset-password",
            params={"token": raw_token},
            json={"new_password": NEW_PASSWORD},
        )
        assert response.status_code == 200

        again = client.post(
            "/api/v1/auth/reset-password",
            params={"token": raw_token},
            json={"new_password": NEW_PASSWORD},
        )
        assert again.status_code == 400
        assert again.json()["message"] == "Reset token already used"

        login = client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": NEW_PASSWORD}
        )
        assert login.status_code == 200

    def test_reset_expired(
        self,
        client: TestClient,
        expire_one_time_token: Callable[[OneTimeTokenKind, str], None],
        mailer: MagicMock,
        user: User,
    ) -> None:
        """Test an expired reset token is a 400."""
        client.post("/api/v1/auth/forgot-password", json={"email": user.email})
        _, raw_token = mailer.send_password_reset_email.call_args.args
        expire_one_time_token(OneTimeTokenKind.PASSWORD_RESET, hash_token(raw_token))

        response = client.post(
            "/api/v1/auth/reset-password",
            params={"token": raw_token},
            json={"new_password": NEW_PASSWORD},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Reset token has expired. Please request a new one"

    def test_change_password(self, client: TestClient, user: User) -> None:
        """Test change-password checks the current password."""
        tokens = _login(client)
        headers = _bearer(tokens["access_token"])

        wrong = client.post(
            "/api/v1/auth/change-password",
            headers=headers,
            json={"current_password": "wrong_password", "new_password": NEW_PASSWORD},
        )
        right = client.post(
            "/api/v1/auth/change-password",
            headers=headers,
            json={"current_password": PASSWORD, "new_password": NEW_PASSWORD},
        )

        assert wrong.status_code == 401
        assert right.status_code == 200
        assert right.json()["message"] == "Password changed successfully"
