"""Tests for settings and dependency helpers."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from damauth.adapters.notifications import ConsoleMailDispatcher, SmtpMailDispatcher
from damauth.core.exceptions import PersistenceError
from damauth.entrypoints.api import deps
from damauth.entrypoints.api.deps import Settings, build_mailer, get_client_ip
from fastapi import FastAPI

ACCESS_SECRET = "test-access-secret-with-enough-entropy"  # pragma: allowlist secret
REFRESH_SECRET = "test-refresh-secret-with-enough-entropy"  # pragma: allowlist secret


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test defaults when nothing is configured."""
        for name in (
            "REFRESH_TOKEN_EXPIRY_DAYS",
            "MAIL_BACKEND",
            "COOKIE_SECURE",
            "RBAC_RESET_ON_START",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.refresh_token_expiry_days == 30
        assert settings.mail_backend == "console"
        assert settings.cookie_secure is False
        assert settings.rbac_reset_on_start is False

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test values are read from the environment."""
        monkeypatch.setenv("REFRESH_TOKEN_EXPIRY_DAYS", "7")
        monkeypatch.setenv("MAIL_BACKEND", "SMTP")
        monkeypatch.setenv("COOKIE_SECURE", "true")
        monkeypatch.setenv("MAIL_USER", "")

        settings = Settings()

        assert settings.refresh_token_expiry_days == 7
        assert settings.mail_backend == "smtp"
        assert settings.cookie_secure is True
        assert settings.mail_user is None


class TestBuildMailer:
    """Tests for build_mailer."""

    def test_console_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the console dispatcher is the default."""
        monkeypatch.delenv("MAIL_BACKEND", raising=False)

        assert isinstance(build_mailer(Settings()), ConsoleMailDispatcher)

    def test_smtp(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test MAIL_BACKEND=smtp selects SMTP delivery."""
        monkeypatch.setenv("MAIL_BACKEND", "smtp")
        monkeypatch.setenv("MAIL_HOST", "smtp.example.com")

        mailer = build_mailer(Settings())

        assert isinstance(mailer, SmtpMailDispatcher)
        assert mailer.config.smtp_host == "smtp.example.com"


class TestGetClientIp:
    """Tests for get_client_ip."""

    def test_forwarded_for(self) -> None:
        """Test the first X-Forwarded-For hop wins."""
        request = MagicMock()
        request.headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1"}

        assert get_client_ip(request) == "203.0.113.7"

    def test_direct_client(self) -> None:
        """Test the socket peer is used without the header."""
        request = MagicMock()
        request.headers = {}
        request.client.host = "10.0.0.2"

        assert get_client_ip(request) == "10.0.0.2"

    def test_no_client(self) -> None:
        """Test None when nothing identifies the caller."""
        request = MagicMock()
        request.headers = {}
        request.client = None

        assert get_client_ip(request) is None


@pytest.fixture
def app_db(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replace the database, seeding and logging setup used by the lifespan."""
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", ACCESS_SECRET)
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", REFRESH_SECRET)
    monkeypatch.setenv("RBAC_RESET_ON_START", "false")
    monkeypatch.setattr(deps, "settings", Settings())

    db = MagicMock()
    db.connect = AsyncMock()
    db.apply_schema = AsyncMock()
    db.close = AsyncMock()
    monkeypatch.setattr(deps, "AppDatabase", MagicMock(return_value=db))
    monkeypatch.setattr(deps, "seed_rbac", AsyncMock())
    monkeypatch.setattr(deps, "setup_logging", MagicMock())
    return db


class TestLifespan:
    """Tests for application startup and shutdown."""

    async def test_wires_state_and_closes_pool(self, app_db: MagicMock) -> None:
        """Test adapters land on app.state and the pool closes on exit."""
        app = FastAPI()

        async with deps.lifespan(app):
            assert app.state.app_db is app_db
            deps.seed_rbac.assert_awaited_once_with(app_db, reset=False)
            app_db.close.assert_not_awaited()

        app_db.close.assert_awaited_once()

    async def test_closes_pool_when_startup_fails(self, app_db: MagicMock) -> None:
        """Test a failing schema step still releases the pool."""
        app_db.apply_schema.side_effect = PersistenceError()

        with pytest.raises(PersistenceError):
            async with deps.lifespan(FastAPI()):
                pass

        deps.seed_rbac.assert_not_awaited()
        app_db.close.assert_awaited_once()
