from authflow.schemas.account import (
    AccountResponse,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyEmailRequest,
)

__all__ = [
    "AccountResponse",
    "AuthResponse",
    "ForgotPasswordRequest",
    "LoginRequest",
    "ResetPasswordRequest",
    "SignupRequest",
    "VerifyEmailRequest",
]
