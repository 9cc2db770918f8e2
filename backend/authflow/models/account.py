"""
Account model

One document per account. Verification and password-reset secrets live on
the account itself; each is cleared in the same write as the state change
it authorizes, which makes them single-use.

Two small state machines are derived from the stored fields:

    VerificationState: PENDING -> VERIFIED           (one way)
    ResetFlowState:    NONE -> PENDING_RESET -> NONE (repeatable)
"""
import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String, Boolean, DateTime, Index

from authflow.core.database import Base
from authflow.core.exceptions import IllegalTransitionError
from authflow.core.utils import ensure_aware, utcnow


class VerificationState(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"


class ResetFlowState(str, enum.Enum):
    NONE = "none"
    PENDING_RESET = "pending_reset"


def new_account_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    """
    User account.

    email is unique and immutable once set (there is no change-email flow).
    hashed_password never leaves the service; see schemas.account.AccountResponse.
    """
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_account_id)

    # Core fields
    email = Column(String(320), unique=True, index=True, nullable=False)
    hashed_password = Column(String(128), nullable=False)
    name = Column(String(255), nullable=False)

    # Email verification
    is_verified = Column(Boolean, nullable=False, default=False)
    verification_code = Column(String(16), nullable=True)
    verification_code_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Password reset
    reset_token_hash = Column(String(64), nullable=True)  # sha256 hex, raw token never stored
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Login tracking
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps (UTC-aware)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_accounts_verification_code", "verification_code"),
        Index("ix_accounts_reset_token_hash", "reset_token_hash", unique=True),
    )

    def __repr__(self):
        return f"<Account(id={self.id}, email='{self.email}')>"

    # ------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------

    @property
    def verification_state(self) -> VerificationState:
        return VerificationState.VERIFIED if self.is_verified else VerificationState.PENDING

    @property
    def reset_flow_state(self) -> ResetFlowState:
        if self.reset_token_hash is None:
            return ResetFlowState.NONE
        return ResetFlowState.PENDING_RESET

    def has_valid_verification_code(self, code: Optional[str], now: datetime) -> bool:
        """Exact match and strictly before expiry."""
        if not code or self.verification_code is None:
            return False
        expires_at = ensure_aware(self.verification_code_expires_at)
        if expires_at is None or not now < expires_at:
            return False
        return self.verification_code == code

    def has_valid_reset_token(self, token_hash: Optional[str], now: datetime) -> bool:
        """Exact match and strictly before expiry."""
        if not token_hash or self.reset_token_hash is None:
            return False
        expires_at = ensure_aware(self.reset_token_expires_at)
        if expires_at is None or not now < expires_at:
            return False
        return self.reset_token_hash == token_hash

    # ------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------

    def issue_verification_code(self, code: str, expires_at: datetime) -> None:
        """Attach a new verification code. Only legal while PENDING."""
        if self.verification_state is VerificationState.VERIFIED:
            raise IllegalTransitionError(
                "Email address is already verified",
                from_state=self.verification_state.value,
                transition="issue_verification_code",
            )
        self.verification_code = code
        self.verification_code_expires_at = expires_at

    def mark_verified(self, now: datetime) -> bool:
        """
        PENDING -> VERIFIED, clearing the code with the flag flip.

        Returns False (and changes nothing) when already verified.
        """
        if self.verification_state is VerificationState.VERIFIED:
            return False
        self.is_verified = True
        self.verification_code = None
        self.verification_code_expires_at = None
        self.updated_at = now
        return True

    def issue_reset_token(self, token_hash: str, expires_at: datetime, now: datetime) -> None:
        """Enter PENDING_RESET. A newer request replaces any earlier token."""
        self.reset_token_hash = token_hash
        self.reset_token_expires_at = expires_at
        self.updated_at = now

    def consume_reset_token(self, new_hashed_password: str, now: datetime) -> None:
        """PENDING_RESET -> NONE, replacing the credential."""
        if self.reset_flow_state is ResetFlowState.NONE:
            raise IllegalTransitionError(
                "No password reset is pending",
                from_state=self.reset_flow_state.value,
                transition="consume_reset_token",
            )
        self.hashed_password = new_hashed_password
        self.reset_token_hash = None
        self.reset_token_expires_at = None
        self.updated_at = now

    def record_login(self, now: datetime) -> None:
        """Record successful login."""
        self.last_login_at = now
        self.updated_at = now
