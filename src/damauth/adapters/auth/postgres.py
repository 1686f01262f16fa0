"""PostgreSQL implementation of CredentialStore."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import asyncpg

from damauth.adapters.db.app_db import AppDatabase, affected_rows, database_errors
from damauth.core.auth.types import (
    OneTimeTokenKind,
    OneTimeTokenRecord,
    RefreshTokenRecord,
    User,
)
from damauth.core.exceptions import Conflict

ONE_TIME_TOKEN_TABLES: dict[OneTimeTokenKind, str] = {
    OneTimeTokenKind.EMAIL_VERIFICATION: "email_verification_tokens",
    OneTimeTokenKind.PASSWORD_RESET: "password_reset_tokens",
}

UPDATABLE_USER_COLUMNS = frozenset(
    {
        "username",
        "password_hash",
        "organization_id",
        "is_email_verified",
        "email_verified_at",
        "is_active",
        "last_login_at",
        "last_login_ip",
    }
)


class PostgresCredentialStore:
    """PostgreSQL implementation of the credential store."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_user(self, row: dict[str, Any]) -> User:
        """Convert database row to User model."""
        return User(
            id=row["id"],
            email=row["email"],
            username=row["username"],
            password_hash=row["password_hash"],
            organization_id=row.get("organization_id"),
            is_email_verified=row.get("is_email_verified", False),
            email_verified_at=row.get("email_verified_at"),
            is_active=row.get("is_active", True),
            last_login_at=row.get("last_login_at"),
            last_login_ip=row.get("last_login_ip"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )

    def _row_to_refresh_token(self, row: dict[str, Any]) -> RefreshTokenRecord:
        """Convert database row to RefreshTokenRecord."""
        return RefreshTokenRecord(
            id=row["id"],
            token_hash=row["token_hash"],
            user_id=row["user_id"],
            expires_at=row["expires_at"],
            revoked=row["revoked"],
            created_at=row["created_at"],
        )

    def _row_to_one_time_token(
        self, kind: OneTimeTokenKind, row: dict[str, Any]
    ) -> OneTimeTokenRecord:
        """Convert database row to OneTimeTokenRecord."""
        return OneTimeTokenRecord(
            id=row["id"],
            kind=kind,
            token_hash=row["token_hash"],
            user_id=row["user_id"],
            expires_at=row["expires_at"],
            is_used=row["is_used"],
            created_at=row["created_at"],
        )

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        async with database_errors("loading user"):
            row = await self._db.fetch_one(
                "SELECT * FROM users WHERE id = $1",
                user_id,
            )
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        async with database_errors("loading user"):
            row = await self._db.fetch_one(
                "SELECT * FROM users WHERE email = $1",
                email,
            )
        return self._row_to_user(row) if row else None

    async def create_user(self, email: str, password_hash: str, username: str) -> User:
        """Create a new unverified user.

        Raises:
            Conflict: If the email is already taken.
        """
        async with database_errors("creating user"):
            try:
                row = await self._db.execute_returning(
                    """
                    INSERT INTO users (email, password_hash, username)
                    VALUES ($1, $2, $3)
                    RETURNING *
                    """,
                    email,
                    password_hash,
                    username,
                )
            except asyncpg.UniqueViolationError as e:
                raise Conflict("Email already registered") from e
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_user(row)

    async def update_user(self, user_id: UUID, **fields: Any) -> User | None:
        """Update user columns.

        Args:
            user_id: User to update.
            **fields: Column values; only known user columns are accepted.

        Returns:
            The updated user, or None if no such user exists.

        Raises:
            ValueError: If an unknown column is passed.
        """
        unknown = set(fields) - UPDATABLE_USER_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update user columns: {sorted(unknown)}")

        if not fields:
            return await self.get_user_by_id(user_id)

        updates = []
        params: list[Any] = []
        param_idx = 1

        for column, value in fields.items():
            updates.append(f"{column} = ${param_idx}")
            params.append(value)
            param_idx += 1

        updates.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(UTC))
        param_idx += 1

        params.append(user_id)
        query = f"""
            UPDATE users SET {", ".join(updates)}
            WHERE id = ${param_idx}
            RETURNING *
        """
        async with database_errors("updating user"):
            row = await self._db.execute_returning(query, *params)
        return self._row_to_user(row) if row else None

    # Refresh tokens
    async def create_refresh_token(
        self, token_hash: str, user_id: UUID, expires_at: datetime
    ) -> RefreshTokenRecord:
        """Persist a new refresh token."""
        async with database_errors("storing refresh token"):
            row = await self._db.execute_returning(
                """
                INSERT INTO refresh_tokens (token_hash, user_id, expires_at)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                token_hash,
                user_id,
                expires_at,
            )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_refresh_token(row)

    async def get_refresh_token(self, token_hash: str) -> RefreshTokenRecord | None:
        """Get refresh token record by hash."""
        async with database_errors("loading refresh token"):
            row = await self._db.fetch_one(
                "SELECT * FROM refresh_tokens WHERE token_hash = $1",
                token_hash,
            )
        return self._row_to_refresh_token(row) if row else None

    async def revoke_refresh_token(self, token_hash: str) -> bool:
        """Revoke a token if it is still live. True only for the winning call."""
        async with database_errors("revoking refresh token"):
            status = await self._db.execute(
                """
                UPDATE refresh_tokens SET revoked = true
                WHERE token_hash = $1 AND revoked = false
                """,
                token_hash,
            )
        return affected_rows(status) == 1

    async def revoke_all_user_refresh_tokens(self, user_id: UUID) -> int:
        """Revoke every live refresh token of a user."""
        async with database_errors("revoking refresh tokens"):
            status = await self._db.execute(
                """
                UPDATE refresh_tokens SET revoked = true
                WHERE user_id = $1 AND revoked = false
                """,
                user_id,
            )
        return affected_rows(status)

    # Email verification / password reset tokens
    async def create_one_time_token(
        self,
        kind: OneTimeTokenKind,
        token_hash: str,
        user_id: UUID,
        expires_at: datetime,
    ) -> OneTimeTokenRecord:
        """Persist a single-use token, replacing the user's unused ones of this kind."""
        table = ONE_TIME_TOKEN_TABLES[kind]
        async with database_errors(f"storing {kind.value} token"):
            async with self._db.transaction() as conn:
                await conn.execute(
                    f"DELETE FROM {table} WHERE user_id = $1 AND is_used = false",
                    user_id,
                )
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO {table} (token_hash, user_id, expires_at)
                    VALUES ($1, $2, $3)
                    RETURNING *
                    """,
                    token_hash,
                    user_id,
                    expires_at,
                )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_one_time_token(kind, dict(row))

    async def get_one_time_token(
        self, kind: OneTimeTokenKind, token_hash: str
    ) -> OneTimeTokenRecord | None:
        """Get single-use token by hash."""
        table = ONE_TIME_TOKEN_TABLES[kind]
        async with database_errors(f"loading {kind.value} token"):
            row = await self._db.fetch_one(
                f"SELECT * FROM {table} WHERE token_hash = $1",
                token_hash,
            )
        return self._row_to_one_time_token(kind, row) if row else None

    async def mark_one_time_token_used(self, kind: OneTimeTokenKind, token_id: UUID) -> bool:
        """Mark a token used. True only if it was still unused."""
        table = ONE_TIME_TOKEN_TABLES[kind]
        async with database_errors(f"consuming {kind.value} token"):
            status = await self._db.execute(
                f"UPDATE {table} SET is_used = true WHERE id = $1 AND is_used = false",
                token_id,
            )
        return affected_rows(status) == 1
