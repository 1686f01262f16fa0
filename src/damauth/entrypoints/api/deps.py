"""Dependency injection and application lifespan management."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import Request

from damauth.adapters.audit import ActivityLogRepository
from damauth.adapters.auth.postgres import PostgresCredentialStore
from damauth.adapters.db.app_db import AppDatabase
from damauth.adapters.notifications import (
    ConsoleMailDispatcher,
    EmailConfig,
    SmtpMailDispatcher,
)
from damauth.adapters.rbac.postgres import PostgresRbacRepository, seed_rbac
from damauth.core.audit import ActivitySink
from damauth.core.auth.mail import MailDispatcher
from damauth.core.auth.repository import CredentialStore
from damauth.core.auth.service import AuthService
from damauth.core.auth.tokens import TokenEngine
from damauth.core.rbac.permission_service import PermissionService
from damauth.core.rbac.repository import RbacRepository
from damauth.log import setup_logging

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        self.database_url = os.getenv("DATABASE_URL", "postgresql://localhost:5432/damauth")

        self.access_token_secret = os.getenv("ACCESS_TOKEN_SECRET", "")
        self.refresh_token_secret = os.getenv("REFRESH_TOKEN_SECRET", "")
        self.refresh_token_expiry_days = int(os.getenv("REFRESH_TOKEN_EXPIRY_DAYS", "30"))

        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5173")
        self.api_base_url = os.getenv("API_BASE_URL", "http://localhost:8000/api/v1/auth")

        # Mail settings
        self.mail_backend = os.getenv("MAIL_BACKEND", "console").lower()
        self.mail_host = os.getenv("MAIL_HOST", "localhost")
        self.mail_port = int(os.getenv("MAIL_PORT", "587"))
        self.mail_user = os.getenv("MAIL_USER") or None
        self.mail_password = os.getenv("MAIL_PASS") or None
        self.mail_from = os.getenv("MAIL_FROM", "no-reply@damauth.local")
        self.mail_use_tls = _env_flag("MAIL_USE_TLS", "true")

        self.cookie_secure = _env_flag("COOKIE_SECURE", "false")

        # Rebuild the RBAC catalog from code on start, discarding admin edits
        self.rbac_reset_on_start = _env_flag("RBAC_RESET_ON_START", "false")

        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_json = _env_flag("LOG_JSON", "false")


settings = Settings()


def build_mailer(config: Settings) -> MailDispatcher:
    """Create the mail dispatcher selected by ``MAIL_BACKEND``."""
    if config.mail_backend == "smtp":
        return SmtpMailDispatcher(
            EmailConfig(
                smtp_host=config.mail_host,
                smtp_port=config.mail_port,
                smtp_user=config.mail_user,
                smtp_password=config.mail_password,
                from_email=config.mail_from,
                use_tls=config.mail_use_tls,
            ),
            frontend_url=config.frontend_url,
            api_base_url=config.api_base_url,
        )
    return ConsoleMailDispatcher(
        frontend_url=config.frontend_url,
        api_base_url=config.api_base_url,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    This context manager handles:
    - Logging configuration
    - Token engine construction (fails fast on missing secrets)
    - Database pool setup, schema and RBAC catalog seeding
    - Adapter wiring into app state
    """
    setup_logging(settings.log_level, settings.log_json)

    token_engine = TokenEngine(
        access_secret=settings.access_token_secret,
        refresh_secret=settings.refresh_token_secret,
        refresh_token_expiry_days=settings.refresh_token_expiry_days,
    )

    app_db = AppDatabase(settings.database_url)
    await app_db.connect()
    try:
        await app_db.apply_schema()
        await seed_rbac(app_db, reset=settings.rbac_reset_on_start)

        app.state.settings = settings
        app.state.app_db = app_db
        app.state.token_engine = token_engine
        app.state.credential_store = PostgresCredentialStore(app_db)
        app.state.rbac_repo = PostgresRbacRepository(app_db)
        app.state.activity_sink = ActivityLogRepository(app_db)
        app.state.mailer = build_mailer(settings)

        logger.info("application_started", mail_backend=settings.mail_backend)

        yield
    finally:
        await app_db.close()
        logger.info("application_stopped")


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def get_app_db(request: Request) -> AppDatabase:
    """Get the application database from app state."""
    app_db: AppDatabase = request.app.state.app_db
    return app_db


def get_token_engine(request: Request) -> TokenEngine:
    """Get the token engine from app state."""
    token_engine: TokenEngine = request.app.state.token_engine
    return token_engine


def get_credential_store(request: Request) -> CredentialStore:
    """Get the credential store from app state."""
    store: CredentialStore = request.app.state.credential_store
    return store


def get_auth_service(request: Request) -> AuthService:
    """Build the auth service from app state."""
    activity: ActivitySink = request.app.state.activity_sink
    mailer: MailDispatcher = request.app.state.mailer
    return AuthService(
        get_credential_store(request),
        get_token_engine(request),
        mailer,
        activity,
    )


def get_permission_service(request: Request) -> PermissionService:
    """Build the permission service from app state."""
    repo: RbacRepository = request.app.state.rbac_repo
    return PermissionService(repo)


def get_client_ip(request: Request) -> str | None:
    """Extract client IP from request.

    Args:
        request: FastAPI request object.

    Returns:
        Client IP address or None.
    """
    # Check X-Forwarded-For header first (for proxied requests)
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None
