"""Auth service for registration, login, token rotation and password flows."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog

from damauth.core.audit import ActivityAction, ActivityEntry, ActivitySink
from damauth.core.auth.mail import MailDispatcher
from damauth.core.auth.password import (
    REGISTRATION_ROUNDS,
    RESET_ROUNDS,
    hash_password,
    verify_password,
)
from damauth.core.auth.repository import CredentialStore
from damauth.core.auth.tokens import TokenEngine, hash_token, is_token_expired
from damauth.core.auth.types import (
    LoginResult,
    OneTimeTokenKind,
    OneTimeTokenRecord,
    PublicUser,
    TokenPair,
    User,
)
from damauth.core.exceptions import (
    AccountDeactivated,
    AlreadyUsed,
    AlreadyVerified,
    Conflict,
    EmailNotVerified,
    Expired,
    Forbidden,
    InvalidCredentials,
    InvalidToken,
    MailDispatchError,
    NotFound,
    ReuseDetected,
    Unauthorized,
)

logger = structlog.get_logger()

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


class AuthService:
    """Service for identity lifecycle operations."""

    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenEngine,
        mailer: MailDispatcher,
        activity: ActivitySink,
    ) -> None:
        """Initialize with collaborators.

        Args:
            store: Credential store for users and tokens.
            tokens: Token engine for minting and verifying credentials.
            mailer: Dispatcher for verification and reset mail.
            activity: Activity log sink.
        """
        self._store = store
        self._tokens = tokens
        self._mailer = mailer
        self._activity = activity

    async def register(
        self,
        email: str,
        password: str,
        username: str,
        client_ip: str | None = None,
    ) -> PublicUser:
        """Register a new, unverified user and send the verification mail.

        Args:
            email: User's email address.
            password: Plain text password.
            username: Display username.
            client_ip: Caller IP for the activity log.

        Returns:
            The created user without password hash.

        Raises:
            Conflict: If the email is already registered.
            MailDispatchError: If the verification mail could not be sent.
                The user and token stay committed.
        """
        email = email.strip().lower()
        logger.info("register_started", email=email)

        existing = await self._store.get_user_by_email(email)
        if existing:
            raise Conflict("Email already registered")

        password_hash = await asyncio.to_thread(hash_password, password, REGISTRATION_ROUNDS)
        user = await self._store.create_user(
            email=email,
            password_hash=password_hash,
            username=username,
        )

        raw_token = await self._issue_one_time_token(OneTimeTokenKind.EMAIL_VERIFICATION, user.id)
        await self._send_mail(self._mailer.send_verification_email, user, raw_token)

        await self._record(
            ActivityAction.USER_CREATED,
            user_id=user.id,
            entity_type="user",
            entity_id=str(user.id),
            details={"username": user.username, "email": user.email},
            ip_address=client_ip,
        )

        logger.info("user_registered", user_id=str(user.id))
        return user.public()

    async def login(
        self,
        email: str,
        password: str,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Authenticate a user and open a new session.

        Args:
            email: User's email address.
            password: Plain text password.
            client_ip: Caller IP, stored as last login IP.
            user_agent: Caller user agent for the activity log.

        Returns:
            LoginResult with the user and a fresh token pair.

        Raises:
            InvalidCredentials: Unknown email or wrong password (same message).
            EmailNotVerified: Email not verified, whatever the password.
            AccountDeactivated: Account disabled.
        """
        email = email.strip().lower()
        logger.info("login_started", email=email)

        user = await self._store.get_user_by_email(email)
        if not user:
            raise InvalidCredentials(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_email_verified:
            raise EmailNotVerified()

        if not user.is_active:
            raise AccountDeactivated()

        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            await self._record(
                ActivityAction.USER_LOGIN,
                user_id=user.id,
                entity_type="user",
                entity_id=str(user.id),
                details={"success": False, "reason": "invalid_password"},
                ip_address=client_ip,
                user_agent=user_agent,
            )
            logger.warning("login_failed", user_id=str(user.id), reason="invalid_password")
            raise InvalidCredentials(INVALID_CREDENTIALS_MESSAGE)

        pair = await self._open_session(user)

        updated = await self._store.update_user(
            user.id,
            last_login_at=datetime.now(UTC),
            last_login_ip=client_ip,
        )

        await self._record(
            ActivityAction.USER_LOGIN,
            user_id=user.id,
            entity_type="user",
            entity_id=str(user.id),
            details={"success": True},
            ip_address=client_ip,
            user_agent=user_agent,
        )

        logger.info("login_succeeded", user_id=str(user.id))
        return LoginResult(
            user=(updated or user).public(),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token into a brand-new token pair.

        The presented token is revoked; it can never be used again. Presenting
        a token that is already revoked is treated as theft: every refresh
        token of the user is revoked and the session family is dead.

        Args:
            refresh_token: The refresh token presented by the client.

        Returns:
            New access and refresh tokens.

        Raises:
            TokenError: Signature, type or expiry check failed.
            Unauthorized: Token unknown, expired, or owner missing.
            ReuseDetected: Token was already revoked (or lost a concurrent rotation).
            Forbidden: Owner account is deactivated.
        """
        self._tokens.verify_refresh_token(refresh_token)
        token_hash = hash_token(refresh_token)

        record = await self._store.get_refresh_token(token_hash)
        if not record:
            raise Unauthorized("Invalid refresh token")

        if record.revoked:
            await self._fail_reused_token(record.user_id)

        if is_token_expired(record.expires_at):
            raise Unauthorized("Refresh token expired. Please login again")

        user = await self._store.get_user_by_id(record.user_id)
        if not user:
            raise Unauthorized("Invalid refresh token")
        if not user.is_active:
            raise Forbidden("Account is deactivated")

        # Only one concurrent rotation can flip the row; the loser is a replay.
        if not await self._store.revoke_refresh_token(token_hash):
            await self._fail_reused_token(record.user_id)

        pair = await self._open_session(user)
        logger.info("tokens_refreshed", user_id=str(user.id))
        return pair

    async def logout(self, refresh_token: str | None, user_id: UUID) -> None:
        """Revoke the presented refresh token, if any.

        Idempotent: an unknown or already revoked token is not an error.

        Args:
            refresh_token: The session's refresh token, if the client sent one.
            user_id: Authenticated user ID.
        """
        logger.info("logout_started", user_id=str(user_id))

        if refresh_token:
            token_hash = hash_token(refresh_token)
            record = await self._store.get_refresh_token(token_hash)
            if record and record.user_id == user_id:
                await self._store.revoke_refresh_token(token_hash)

        await self._record(
            ActivityAction.USER_LOGOUT,
            user_id=user_id,
            entity_type="user",
            entity_id=str(user_id),
        )
        logger.info("logout_succeeded", user_id=str(user_id))

    async def logout_all_devices(self, user_id: UUID) -> int:
        """Revoke every refresh token of a user.

        Args:
            user_id: Authenticated user ID.

        Returns:
            Number of tokens revoked.
        """
        revoked = await self._store.revoke_all_user_refresh_tokens(user_id)

        await self._record(
            ActivityAction.USER_LOGOUT,
            user_id=user_id,
            entity_type="user",
            entity_id=str(user_id),
            details={"all_devices": True},
        )
        logger.info("logout_all_succeeded", user_id=str(user_id), revoked=revoked)
        return revoked

    async def forgot_password(self, email: str) -> None:
        """Request a password reset.

        For security, this always succeeds (doesn't reveal if email exists).
        Only an existing, verified user actually gets a reset mail.

        Args:
            email: User's email address.
        """
        email = email.strip().lower()
        user = await self._store.get_user_by_email(email)
        if not user:
            # Silently succeed - don't reveal if email exists
            logger.info("password_reset_requested_unknown_email")
            return

        if not user.is_email_verified:
            logger.info("password_reset_requested_unverified_user", user_id=str(user.id))
            return

        raw_token = await self._issue_one_time_token(OneTimeTokenKind.PASSWORD_RESET, user.id)

        try:
            await self._mailer.send_password_reset_email(user.email, raw_token)
        except MailDispatchError:
            # Don't raise - we don't want to reveal email delivery status
            logger.error("password_reset_email_failed", user_id=str(user.id))
            return

        logger.info("password_reset_email_sent", user_id=str(user.id))

    async def reset_password(self, token: str, new_password: str) -> None:
        """Reset password using a valid token.

        Every refresh token of the user is revoked, forcing re-authentication
        on all devices. The token is consumed only after the password and
        session writes succeed, so a storage failure leaves it usable.

        Args:
            token: The reset token from the email link.
            new_password: The new password to set.

        Raises:
            InvalidToken: Token unknown.
            AlreadyUsed: Token already consumed.
            Expired: Token past its window.
        """
        record = await self._check_one_time_token(
            OneTimeTokenKind.PASSWORD_RESET, token, label="Reset token"
        )

        password_hash = await asyncio.to_thread(hash_password, new_password, RESET_ROUNDS)
        updated = await self._store.update_user(record.user_id, password_hash=password_hash)
        if not updated:
            raise InvalidToken("Invalid or expired reset token")

        await self._store.revoke_all_user_refresh_tokens(record.user_id)
        await self._burn_one_time_token(record, label="Reset token")

        await self._record(
            ActivityAction.USER_UPDATED,
            user_id=record.user_id,
            entity_type="user",
            entity_id=str(record.user_id),
            details={"password_reset": True},
        )
        logger.info("password_reset_successful", user_id=str(record.user_id))

    async def resend_verification_email(self, email: str) -> None:
        """Send a fresh verification mail, superseding any unused one.

        Args:
            email: User's email address.

        Raises:
            AlreadyVerified: The email is already verified.
            MailDispatchError: If the mail could not be sent.
        """
        email = email.strip().lower()
        user = await self._store.get_user_by_email(email)
        if not user:
            logger.info("verification_resend_unknown_email")
            return

        if user.is_email_verified:
            raise AlreadyVerified()

        raw_token = await self._issue_one_time_token(OneTimeTokenKind.EMAIL_VERIFICATION, user.id)
        await self._send_mail(self._mailer.send_verification_email, user, raw_token)
        logger.info("verification_email_resent", user_id=str(user.id))

    async def verify_email(self, token: str) -> None:
        """Mark the user's email verified.

        Args:
            token: Verification token from the email link.

        Raises:
            InvalidToken: Token unknown.
            AlreadyUsed: Token already consumed.
            Expired: Token past its window.
        """
        record = await self._check_one_time_token(
            OneTimeTokenKind.EMAIL_VERIFICATION, token, label="Verification token"
        )

        updated = await self._store.update_user(
            record.user_id,
            is_email_verified=True,
            email_verified_at=datetime.now(UTC),
        )
        if not updated:
            raise InvalidToken("Invalid verification token")

        await self._burn_one_time_token(record, label="Verification token")

        await self._record(
            ActivityAction.USER_REGISTERED,
            user_id=record.user_id,
            entity_type="user",
            entity_id=str(record.user_id),
            details={"email_verified": True},
        )
        logger.info("email_verified", user_id=str(record.user_id))

    async def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        """Change the password of an authenticated user.

        Raises:
            NotFound: User does not exist.
            InvalidCredentials: Current password is wrong.
        """
        user = await self._store.get_user_by_id(user_id)
        if not user:
            raise NotFound("User not found")

        if not await asyncio.to_thread(verify_password, current_password, user.password_hash):
            logger.warning("password_change_rejected", user_id=str(user_id))
            raise InvalidCredentials("Current password is incorrect")

        password_hash = await asyncio.to_thread(hash_password, new_password, RESET_ROUNDS)
        await self._store.update_user(user_id, password_hash=password_hash)

        await self._record(
            ActivityAction.USER_UPDATED,
            user_id=user_id,
            entity_type="user",
            entity_id=str(user_id),
            details={"password_changed": True},
        )
        logger.info("password_changed", user_id=str(user_id))

    async def get_profile(self, user_id: UUID) -> PublicUser:
        """Get the current user.

        Raises:
            NotFound: User does not exist.
        """
        user = await self._store.get_user_by_id(user_id)
        if not user:
            raise NotFound("User not found")
        return user.public()

    async def update_profile(self, user_id: UUID, username: str | None = None) -> PublicUser:
        """Update the editable profile fields of a user.

        Fields left as None are unchanged.

        Raises:
            NotFound: User does not exist.
        """
        changes = {"username": username} if username is not None else {}
        if not changes:
            return await self.get_profile(user_id)

        updated = await self._store.update_user(user_id, **changes)
        if not updated:
            raise NotFound("User not found")

        await self._record(
            ActivityAction.USER_UPDATED,
            user_id=user_id,
            entity_type="user",
            entity_id=str(user_id),
            details={"updated_fields": sorted(changes)},
        )
        logger.info("profile_updated", user_id=str(user_id), fields=sorted(changes))
        return updated.public()

    # Internals

    async def _open_session(self, user: User) -> TokenPair:
        access_token = self._tokens.issue_access_token(user.id, user.email)
        refresh_token = self._tokens.issue_refresh_token(user.id)
        await self._store.create_refresh_token(
            token_hash=hash_token(refresh_token),
            user_id=user.id,
            expires_at=self._tokens.refresh_token_expiry(),
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def _fail_reused_token(self, user_id: UUID) -> None:
        """Kill every session of the user and raise ReuseDetected."""
        await self._store.revoke_all_user_refresh_tokens(user_id)
        logger.warning("refresh_token_reuse_detected", user_id=str(user_id))
        raise ReuseDetected()

    async def _issue_one_time_token(self, kind: OneTimeTokenKind, user_id: UUID) -> str:
        raw_token = self._tokens.issue_opaque_secret()
        if kind is OneTimeTokenKind.EMAIL_VERIFICATION:
            expires_at = self._tokens.email_verification_expiry()
        else:
            expires_at = self._tokens.password_reset_expiry()
        await self._store.create_one_time_token(
            kind=kind,
            token_hash=hash_token(raw_token),
            user_id=user_id,
            expires_at=expires_at,
        )
        return raw_token

    async def _check_one_time_token(
        self, kind: OneTimeTokenKind, token: str, label: str
    ) -> OneTimeTokenRecord:
        record = await self._store.get_one_time_token(kind, hash_token(token))
        if not record:
            logger.warning("one_time_token_invalid", kind=kind.value)
            raise InvalidToken(f"Invalid {label.lower()}")

        if record.is_used:
            logger.warning("one_time_token_already_used", kind=kind.value, token_id=str(record.id))
            raise AlreadyUsed(f"{label} already used")

        if is_token_expired(record.expires_at):
            logger.warning("one_time_token_expired", kind=kind.value, token_id=str(record.id))
            raise Expired(f"{label} has expired. Please request a new one")

        return record

    async def _burn_one_time_token(self, record: OneTimeTokenRecord, label: str) -> None:
        if not await self._store.mark_one_time_token_used(record.kind, record.id):
            logger.warning(
                "one_time_token_consume_lost", kind=record.kind.value, token_id=str(record.id)
            )
            raise AlreadyUsed(f"{label} already used")

    async def _send_mail(
        self,
        send: Callable[[str, str], Awaitable[None]],
        user: User,
        raw_token: str,
    ) -> None:
        try:
            await send(user.email, raw_token)
        except MailDispatchError:
            logger.error("auth_mail_failed", user_id=str(user.id))
            raise

    async def _record(self, action: ActivityAction, **fields: Any) -> None:
        try:
            await self._activity.log_activity(ActivityEntry(action=action, **fields))
        except Exception as e:
            # Log but don't fail the operation
            logger.error("activity_log_failed", action=action.value, error=str(e))
