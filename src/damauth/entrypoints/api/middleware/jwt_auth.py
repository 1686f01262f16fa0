"""JWT authentication middleware."""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from damauth.core.auth.repository import CredentialStore
from damauth.core.auth.tokens import TokenEngine
from damauth.core.auth.types import PublicUser
from damauth.core.exceptions import AccountDeactivated, TokenError, Unauthorized
from damauth.entrypoints.api.deps import get_credential_store, get_token_engine

logger = structlog.get_logger()

# Use Bearer token authentication, falling back to the access_token cookie
bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN_COOKIE = "access_token"


@dataclass
class AuthContext:
    """The authenticated principal of a request."""

    user: PublicUser

    @property
    def user_id(self) -> UUID:
        """Get the user's ID."""
        return self.user.id

    @property
    def organization_id(self) -> UUID | None:
        """Get the user's organization, None for super-admins."""
        return self.user.organization_id


async def authenticate(
    request: Request,
    tokens: Annotated[TokenEngine, Depends(get_token_engine)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> AuthContext:
    """Verify the access token and load the principal.

    Args:
        request: The current request.
        tokens: Token engine.
        store: Credential store.
        credentials: Bearer token credentials.

    Returns:
        AuthContext for the active user.

    Raises:
        Unauthorized: 401 if the token is missing or invalid or the user is gone.
        AccountDeactivated: 403 if the user is deactivated.
    """
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise Unauthorized("Access token not provided")

    try:
        claims = tokens.verify_access_token(token)
    except TokenError as e:
        logger.warning("jwt_validation_failed", reason=e.message)
        raise

    user = await store.get_user_by_id(claims.user_id)
    if user is None:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise AccountDeactivated("Account is deactivated")

    context = AuthContext(user=user.public())

    # Store in request state for downstream use
    request.state.user = context

    logger.debug("jwt_verified", user_id=str(context.user_id))

    return context


CurrentUser = Annotated[AuthContext, Depends(authenticate)]
