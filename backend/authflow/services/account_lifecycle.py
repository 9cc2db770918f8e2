"""
Account Lifecycle Service

Owns account state transitions and the issuance/consumption of one-time
secrets (verification codes, reset tokens) and session tokens.

Every operation persists its state change before sending email. Email is
best-effort in the sense that a failed send fails the request but does not
roll the persisted change back.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from authflow.core.config import Settings
from authflow.core.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    InvalidOrExpiredError,
    NotFoundError,
    UnverifiedAccountError,
    ValidationError,
)
from authflow.core.security import (
    burn_password_check,
    create_session_token,
    generate_reset_token,
    generate_verification_code,
    get_password_hash,
    hash_token,
    password_fits_bcrypt,
    verify_password,
)
from authflow.core.utils import normalize_email, utcnow
from authflow.models.account import Account, new_account_id
from authflow.services.account_store import AccountStore
from authflow.services.auth_email_service import AuthEmailService

logger = logging.getLogger(__name__)

PASSWORD_TOO_LONG_MESSAGE = "Password must be at most 72 bytes"


@dataclass
class SessionResult:
    """An account together with a freshly issued session token."""
    account: Account
    session_token: str


def _required(value: Optional[str]) -> str:
    return (value or "").strip()


def _check_password_length(password: str) -> None:
    if not password_fits_bcrypt(password):
        raise ValidationError(PASSWORD_TOO_LONG_MESSAGE)


class AccountLifecycleService:
    """
    Signup, verification, login and password reset.

    Collaborators are passed in: the account store, the notification sender
    and the process settings (signing key, TTLs, policy switches).
    """

    def __init__(
        self,
        store: AccountStore,
        notifier: AuthEmailService,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.settings = settings
        self.clock = clock

    # ============================================================
    # Sessions
    # ============================================================

    def issue_session(self, account: Account, now: datetime) -> str:
        """Signed, expiring token bound to the account id."""
        return create_session_token(account.id, self.settings, now=now)

    # ============================================================
    # Signup / verification
    # ============================================================

    async def register(
        self,
        email: Optional[str],
        password: Optional[str],
        name: Optional[str],
    ) -> SessionResult:
        """
        Create an unverified account and email it a 6-digit code.

        Raises:
            ValidationError: a field is missing, or the password is over 72 bytes
            ConflictError: the email is already registered
        """
        email = normalize_email(email)
        name = _required(name)
        if not email or not password or not name:
            raise ValidationError("All fields are required")
        _check_password_length(password)

        if await self.store.get_by_email(email) is not None:
            raise ConflictError("User already exists")

        now = self.clock()
        account = Account(
            id=new_account_id(),
            email=email,
            hashed_password=get_password_hash(password, rounds=self.settings.BCRYPT_ROUNDS),
            name=name,
            is_verified=False,
            created_at=now,
            updated_at=now,
        )
        code = generate_verification_code()
        account.issue_verification_code(
            code,
            expires_at=now + timedelta(minutes=self.settings.VERIFICATION_CODE_TTL_MINUTES),
        )

        # add() re-checks uniqueness atomically
        await self.store.add(account)
        logger.info(f"Account {account.id} created")

        session_token = self.issue_session(account, now)
        await self.notifier.send_verification_email(account.email, code)

        return SessionResult(account=account, session_token=session_token)

    async def verify_email(self, code: Optional[str], account_id: Optional[str] = None) -> Account:
        """
        Consume a verification code.

        With account_id (the caller's session) only that account's code is
        accepted; codes are not unique across pending accounts.
        Wrong and expired codes raise the same InvalidOrExpiredError.
        """
        code = _required(code)
        now = self.clock()
        account = await self._find_by_verification_code(code, account_id, now) if code else None
        if account is None:
            logger.warning("Verification rejected: invalid or expired code")
            raise InvalidOrExpiredError("Invalid or expired verification code")

        account.mark_verified(now)
        await self.store.save(account)
        logger.info(f"Account {account.id} verified")

        await self.notifier.send_welcome_email(account.email, account.name)
        return account

    async def _find_by_verification_code(
        self, code: str, account_id: Optional[str], now: datetime
    ) -> Optional[Account]:
        if account_id is None:
            return await self.store.get_by_verification_code(code, now)
        account = await self.store.get_by_id(account_id)
        if account is None or not account.has_valid_verification_code(code, now):
            return None
        return account

    # ============================================================
    # Login
    # ============================================================

    async def login(self, email: Optional[str], password: Optional[str]) -> SessionResult:
        """
        Authenticate by email and password.

        Unknown email and wrong password raise the same InvalidCredentialsError.
        """
        email = normalize_email(email)
        password = password or ""
        if not email or not password:
            raise ValidationError("Email and password are required")

        account = await self.store.get_by_email(email)
        if account is None:
            burn_password_check(password)
            logger.warning("Login failed: invalid credentials")
            raise InvalidCredentialsError("Invalid credentials")

        if not verify_password(password, account.hashed_password):
            logger.warning(f"Login failed for account {account.id}: invalid credentials")
            raise InvalidCredentialsError("Invalid credentials")

        if self.settings.REQUIRE_VERIFIED_LOGIN and not account.is_verified:
            logger.info(f"Login refused for unverified account {account.id}")
            raise UnverifiedAccountError()

        now = self.clock()
        session_token = self.issue_session(account, now)
        account.record_login(now)
        await self.store.save(account)
        logger.info(f"Account {account.id} logged in")

        return SessionResult(account=account, session_token=session_token)

    # ============================================================
    # Password reset
    # ============================================================

    def build_reset_url(self, raw_token: str) -> str:
        return f"{self.settings.CLIENT_URL.rstrip('/')}/reset-password/{raw_token}"

    async def request_password_reset(self, email: Optional[str]) -> Optional[Account]:
        """
        Issue a reset token and email the reset link.

        Returns the account, or None when the email is unknown and
        ENUMERATION_PROTECTION hides that fact from the caller.

        Raises:
            NotFoundError: unknown email with ENUMERATION_PROTECTION off
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")

        account = await self.store.get_by_email(email)
        if account is None:
            if self.settings.ENUMERATION_PROTECTION:
                logger.info("Password reset requested for unknown email, ignored")
                return None
            raise NotFoundError("User not found")

        now = self.clock()
        raw_token = generate_reset_token()
        account.issue_reset_token(
            hash_token(raw_token),
            expires_at=now + timedelta(minutes=self.settings.PASSWORD_RESET_TTL_MINUTES),
            now=now,
        )
        await self.store.save(account)
        logger.info(f"Password reset requested for account {account.id}")

        await self.notifier.send_password_reset_email(account.email, self.build_reset_url(raw_token))
        return account

    async def reset_password(self, token: Optional[str], new_password: Optional[str]) -> Account:
        """
        Consume a reset token and replace the password.

        Wrong and expired tokens raise the same InvalidOrExpiredError.
        """
        token = _required(token)
        if not new_password:
            raise ValidationError("Password is required")
        _check_password_length(new_password)

        now = self.clock()
        account = await self.store.get_by_reset_token(hash_token(token), now) if token else None
        if account is None:
            logger.warning("Password reset rejected: invalid or expired token")
            raise InvalidOrExpiredError("Invalid or expired reset token")

        account.consume_reset_token(
            get_password_hash(new_password, rounds=self.settings.BCRYPT_ROUNDS),
            now=now,
        )
        await self.store.save(account)
        logger.info(f"Password reset completed for account {account.id}")

        await self.notifier.send_reset_success_email(account.email)
        return account

    # ============================================================
    # Session check
    # ============================================================

    async def check_session(self, account_id: Optional[str]) -> Account:
        """Resolve the account behind an already-validated session token."""
        account = await self.store.get_by_id(account_id) if account_id else None
        if account is None:
            raise NotFoundError("User not found")
        return account
