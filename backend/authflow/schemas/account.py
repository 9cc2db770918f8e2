"""
Account schemas

Request bodies keep every field optional so that missing values reach the
service and fail with its ValidationError message instead of a 422.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class VerifyEmailRequest(BaseModel):
    code: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    password: Optional[str] = None


class AccountResponse(BaseModel):
    """Public view of an account: no password hash, no one-time secrets."""
    id: str
    email: str
    name: str
    is_verified: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    user: Optional[AccountResponse] = None
