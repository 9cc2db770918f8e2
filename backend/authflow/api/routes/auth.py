"""
Authentication routes

Signup, email verification, login/logout, password reset and session check.

- Rate limited (RATE_LIMIT_AUTH) to slow down brute force attempts
- Session token delivered as an HttpOnly, SameSite cookie
- Domain errors are turned into {"success": false, "message": ...} by the
  handlers registered in authflow.core.error_handler
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from authflow.api.deps import (
    get_current_account_id,
    get_lifecycle_service,
    get_optional_account_id,
    get_settings,
)
from authflow.core.config import Settings, settings as app_settings
from authflow.core.cookies import clear_session_cookie, set_session_cookie
from authflow.core.rate_limit import limiter
from authflow.schemas.account import (
    AccountResponse,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyEmailRequest,
)
from authflow.services.account_lifecycle import AccountLifecycleService

router = APIRouter()

RESET_LINK_SENT_MESSAGE = "Password reset link sent to your email"


@router.post(
    "/signup",
    response_model=AuthResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(app_settings.RATE_LIMIT_AUTH)
async def signup(
    request: Request,
    response: Response,
    body: SignupRequest,
    service: AccountLifecycleService = Depends(get_lifecycle_service),
    settings: Settings = Depends(get_settings),
):
    """Create an account, set the session cookie and email a verification code."""
    result = await service.register(body.email, body.password, body.name)
    set_session_cookie(response, result.session_token, settings)
    return AuthResponse(
        message="User created successfully",
        user=AccountResponse.model_validate(result.account),
    )


@router.post("/verify-email", response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(app_settings.RATE_LIMIT_AUTH)
async def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    account_id: Optional[str] = Depends(get_optional_account_id),
    service: AccountLifecycleService = Depends(get_lifecycle_service),
):
    """Consume the 6-digit verification code, scoped to the session when there is one."""
    account = await service.verify_email(body.code, account_id=account_id)
    return AuthResponse(
        message="Email verified successfully",
        user=AccountResponse.model_validate(account),
    )


@router.post("/login", response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(app_settings.RATE_LIMIT_AUTH)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AccountLifecycleService = Depends(get_lifecycle_service),
    settings: Settings = Depends(get_settings),
):
    """Authenticate and set the session cookie."""
    result = await service.login(body.email, body.password)
    set_session_cookie(response, result.session_token, settings)
    return AuthResponse(
        message="Logged in successfully",
        user=AccountResponse.model_validate(result.account),
    )


@router.post("/logout", response_model=AuthResponse, response_model_exclude_none=True)
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    """Clear the session cookie. Nothing is revoked server-side."""
    clear_session_cookie(response, settings)
    return AuthResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(app_settings.RATE_LIMIT_AUTH)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    service: AccountLifecycleService = Depends(get_lifecycle_service),
):
    """Email a password reset link (same answer for unknown emails when protected)."""
    await service.request_password_reset(body.email)
    return AuthResponse(message=RESET_LINK_SENT_MESSAGE)


@router.post("/reset-password/{token}", response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(app_settings.RATE_LIMIT_AUTH)
async def reset_password(
    request: Request,
    token: str,
    body: ResetPasswordRequest,
    service: AccountLifecycleService = Depends(get_lifecycle_service),
):
    """Set a new password with the token from the reset link."""
    await service.reset_password(token, body.password)
    return AuthResponse(message="Password reset successful")


@router.get("/check-auth", response_model=AuthResponse, response_model_exclude_none=True)
async def check_auth(
    account_id: str = Depends(get_current_account_id),
    service: AccountLifecycleService = Depends(get_lifecycle_service),
):
    """Return the account behind the current session."""
    account = await service.check_session(account_id)
    return AuthResponse(user=AccountResponse.model_validate(account))
