"""Auth API routes for registration, login, token refresh and password flows."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import AfterValidator, BaseModel, EmailStr, Field

from damauth.core.auth.service import AuthService
from damauth.core.auth.tokens import ACCESS_TOKEN_EXPIRE_MINUTES
from damauth.core.auth.types import LoginResult, PublicUser, TokenPair
from damauth.core.exceptions import Unauthorized
from damauth.entrypoints.api.deps import Settings, get_auth_service, get_client_ip, get_settings
from damauth.entrypoints.api.middleware.jwt_auth import ACCESS_TOKEN_COOKIE, CurrentUser
from damauth.entrypoints.api.responses import ApiResponse

router = APIRouter(tags=["auth"])

REFRESH_TOKEN_COOKIE = "refresh_token"

# bcrypt rejects passwords longer than 72 bytes
PASSWORD_MAX_BYTES = 72

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


def _fits_bcrypt(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return value


NewPassword = Annotated[str, Field(min_length=8), AfterValidator(_fits_bcrypt)]
PresentedPassword = Annotated[str, Field(min_length=1), AfterValidator(_fits_bcrypt)]
Username = Annotated[str, Field(min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$")]


# Request models
class RegisterRequest(BaseModel):
    """Registration request body."""

    email: EmailStr
    password: NewPassword
    username: Username


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: PresentedPassword


class EmailRequest(BaseModel):
    """Body carrying only an email address."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Password reset body; the token travels in the query string."""

    new_password: NewPassword


class RefreshRequest(BaseModel):
    """Optional body for clients that do not use cookies."""

    refresh_token: str | None = None


class ChangePasswordRequest(BaseModel):
    """Change password body."""

    current_password: PresentedPassword
    new_password: NewPassword


class UpdateProfileRequest(BaseModel):
    """Profile fields the user may change."""

    username: Username | None = None


class LogoutAllData(BaseModel):
    """Result of logging out everywhere."""

    revoked_sessions: int


def _set_session_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=settings.refresh_token_expiry_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def _clear_session_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.cookie_secure, samesite="lax")


def _presented_refresh_token(request: Request, body: RefreshRequest | None) -> str | None:
    cookie_token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if cookie_token:
        return cookie_token
    return body.refresh_token if body else None


@router.post("/register", response_model=ApiResponse[PublicUser], status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    service: AuthServiceDep,
) -> ApiResponse[PublicUser]:
    """Register a new user and send the verification email.

    Args:
        body: Registration info.
        request: The current request.
        service: Auth service.

    Returns:
        The created user.
    """
    user = await service.register(
        email=body.email,
        password=body.password,
        username=body.username,
        client_ip=get_client_ip(request),
    )
    return ApiResponse(
        message="User registered successfully. Please verify your email",
        data=user,
        status_code=201,
    )


@router.post("/login", response_model=ApiResponse[LoginResult])
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    service: AuthServiceDep,
    settings: SettingsDep,
) -> ApiResponse[LoginResult]:
    """Authenticate and open a session; tokens are also set as cookies."""
    result = await service.login(
        email=body.email,
        password=body.password,
        client_ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    _set_session_cookies(response, result, settings)
    return ApiResponse(message="Login successful", data=result)


@router.get("/verify-email", response_model=ApiResponse[None])
async def verify_email(
    service: AuthServiceDep,
    token: Annotated[str, Query(min_length=1)],
) -> ApiResponse[None]:
    """Verify an email address with the token from the verification mail."""
    await service.verify_email(token)
    return ApiResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=ApiResponse[None])
async def resend_verification(
    body: EmailRequest,
    service: AuthServiceDep,
) -> ApiResponse[None]:
    """Send a fresh verification email.

    Unknown addresses get the same response as known ones.
    """
    await service.resend_verification_email(body.email)
    return ApiResponse(
        message="If an account exists with this email, a verification link has been sent"
    )


@router.post("/forgot-password", response_model=ApiResponse[None])
async def forgot_password(
    body: EmailRequest,
    service: AuthServiceDep,
) -> ApiResponse[None]:
    """Request a password reset email.

    Always answers the same way, whether or not the account exists.
    """
    await service.forgot_password(body.email)
    return ApiResponse(
        message="If an account exists with this email, a password reset link has been sent"
    )


@router.post("/reset-password", response_model=ApiResponse[None])
async def reset_password(
    body: ResetPasswordRequest,
    service: AuthServiceDep,
    token: Annotated[str, Query(min_length=1)],
) -> ApiResponse[None]:
    """Set a new password using the token from the reset mail."""
    await service.reset_password(token, body.new_password)
    return ApiResponse(message="Password reset successfully. Please login again")


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
async def refresh_token(
    request: Request,
    response: Response,
    service: AuthServiceDep,
    settings: SettingsDep,
    body: RefreshRequest | None = None,
) -> ApiResponse[TokenPair]:
    """Rotate the refresh token into a new token pair."""
    token = _presented_refresh_token(request, body)
    if not token:
        raise Unauthorized("Refresh token not provided")

    tokens = await service.refresh(token)
    _set_session_cookies(response, tokens, settings)
    return ApiResponse(message="Token refreshed successfully", data=tokens)


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    request: Request,
    response: Response,
    auth: CurrentUser,
    service: AuthServiceDep,
    settings: SettingsDep,
    body: RefreshRequest | None = None,
) -> ApiResponse[None]:
    """Revoke the current session's refresh token and clear cookies."""
    await service.logout(_presented_refresh_token(request, body), auth.user_id)
    _clear_session_cookies(response, settings)
    return ApiResponse(message="Logout successful")


@router.post("/logout-all", response_model=ApiResponse[LogoutAllData])
async def logout_all(
    response: Response,
    auth: CurrentUser,
    service: AuthServiceDep,
    settings: SettingsDep,
) -> ApiResponse[LogoutAllData]:
    """Revoke every refresh token of the current user."""
    revoked = await service.logout_all_devices(auth.user_id)
    _clear_session_cookies(response, settings)
    return ApiResponse(
        message="Logged out from all devices",
        data=LogoutAllData(revoked_sessions=revoked),
    )


@router.post("/change-password", response_model=ApiResponse[None])
async def change_password(
    body: ChangePasswordRequest,
    auth: CurrentUser,
    service: AuthServiceDep,
) -> ApiResponse[None]:
    """Change the current user's password."""
    await service.change_password(auth.user_id, body.current_password, body.new_password)
    return ApiResponse(message="Password changed successfully")


@router.get("/me", response_model=ApiResponse[PublicUser])
async def me(auth: CurrentUser, service: AuthServiceDep) -> ApiResponse[PublicUser]:
    """Get the current user's profile."""
    user = await service.get_profile(auth.user_id)
    return ApiResponse(message="User profile fetched", data=user)


@router.patch("/me", response_model=ApiResponse[PublicUser])
async def update_me(
    body: UpdateProfileRequest,
    auth: CurrentUser,
    service: AuthServiceDep,
) -> ApiResponse[PublicUser]:
    """Update the current user's profile."""
    user = await service.update_profile(auth.user_id, username=body.username)
    return ApiResponse(message="User profile updated", data=user)
