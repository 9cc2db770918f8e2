"""
Session Cookie Utilities

Centralized cookie handling for the session token.
"""
from typing import Optional
from fastapi import Response
from starlette.requests import Request

from authflow.core.config import Settings


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """
    Attach the session token to the response.

    HttpOnly (not readable by JS), SameSite-restricted, expires with the token.
    """
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        max_age=settings.session_max_age_seconds,
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Clear the session cookie by name."""
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        secure=settings.COOKIE_SECURE,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
    )


def get_session_token_from_cookie(request: Request, settings: Settings) -> Optional[str]:
    """Extract session token from cookie."""
    return request.cookies.get(settings.SESSION_COOKIE_NAME)
