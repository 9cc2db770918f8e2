"""
API dependencies

Wires the process settings, the account store, the email sender and the
lifecycle service into route handlers, and resolves the session token.

Session tokens are accepted from the HttpOnly cookie (web clients) or an
Authorization: Bearer header (API clients).
"""
from typing import AsyncIterator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from authflow.core.config import Settings, settings as app_settings
from authflow.core.cookies import get_session_token_from_cookie
from authflow.core.database import get_db_session
from authflow.core.exceptions import NotAuthenticatedError
from authflow.core.security import decode_session_token
from authflow.services.account_lifecycle import AccountLifecycleService
from authflow.services.account_store import (
    AccountStore,
    InMemoryAccountStore,
    SqlAlchemyAccountStore,
)
from authflow.services.auth_email_service import AuthEmailService

# Optional bearer - doesn't fail if no Authorization header
security = HTTPBearer(auto_error=False)

# Process-wide singletons, created on first use
memory_account_store = InMemoryAccountStore()
_email_service: Optional[AuthEmailService] = None


def get_settings() -> Settings:
    return app_settings


def get_email_service(settings: Settings = Depends(get_settings)) -> AuthEmailService:
    """Get or create singleton email service."""
    global _email_service
    if _email_service is None:
        _email_service = AuthEmailService(settings)
    return _email_service


async def close_email_service() -> None:
    if _email_service is not None:
        await _email_service.provider.close()


async def get_account_store(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[AccountStore]:
    """One store per request; the SQL store gets its own session."""
    if settings.ACCOUNT_STORE_BACKEND == "memory":
        yield memory_account_store
        return

    async with get_db_session() as session:
        yield SqlAlchemyAccountStore(session)


def get_lifecycle_service(
    store: AccountStore = Depends(get_account_store),
    notifier: AuthEmailService = Depends(get_email_service),
    settings: Settings = Depends(get_settings),
) -> AccountLifecycleService:
    return AccountLifecycleService(store=store, notifier=notifier, settings=settings)


def get_token_from_request(
    request: Request,
    settings: Settings,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[str]:
    """
    Extract the session token from request.

    Priority:
    1. Authorization header (Bearer token) - for API clients
    2. HttpOnly cookie - for web browsers
    """
    if credentials and credentials.credentials:
        return credentials.credentials

    return get_session_token_from_cookie(request, settings)


async def get_current_account_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """Account id from a valid session token, else 401."""
    token = get_token_from_request(request, settings, credentials)
    if not token:
        raise NotAuthenticatedError("Unauthorized - no token provided")

    account_id = decode_session_token(token, settings)
    if not account_id:
        raise NotAuthenticatedError("Unauthorized - invalid token")

    return account_id


async def get_optional_account_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """Account id from a valid session token, None when absent or invalid."""
    token = get_token_from_request(request, settings, credentials)
    return decode_session_token(token, settings)
