"""
Security utilities - password hashing, session tokens, one-time secrets

Uses timezone-aware datetime (datetime.now(timezone.utc)) throughout.
Session tokens carry a JTI so individual tokens can be told apart in logs.
"""
import hashlib
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from authflow.core.config import Settings
from authflow.core.utils import utcnow

SESSION_TOKEN_TYPE = "session"
VERIFICATION_CODE_DIGITS = 6
RESET_TOKEN_BYTES = 20  # 160 bits, 40 hex chars
MAX_PASSWORD_BYTES = 72  # bcrypt input limit

# Compared against on unknown-email logins so both paths pay for a bcrypt check
_DUMMY_HASH = bcrypt.hashpw(b"authflow-dummy-password", bcrypt.gensalt(rounds=4)).decode("utf-8")


def password_fits_bcrypt(password: str) -> bool:
    """True when the UTF-8 encoding exists and is within bcrypt's 72-byte limit."""
    try:
        return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES
    except UnicodeEncodeError:
        return False


def get_password_hash(password: str, rounds: int = 10) -> str:
    """Generate password hash"""
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds)
    ).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash"""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8")
        )
    except ValueError:
        # Malformed stored hash or password over bcrypt's 72-byte limit
        return False


def burn_password_check(plain_password: str) -> None:
    """Run a throwaway bcrypt comparison to even out login timing."""
    verify_password(plain_password, _DUMMY_HASH)


def generate_verification_code() -> str:
    """Six-digit numeric email verification code (100000-999999)."""
    low = 10 ** (VERIFICATION_CODE_DIGITS - 1)
    return str(low + secrets.randbelow(9 * low))


def generate_reset_token() -> str:
    """Unguessable password reset token, hex encoded."""
    return secrets.token_hex(RESET_TOKEN_BYTES)


def hash_token(raw_token: str) -> str:
    """SHA-256 digest stored in place of a raw reset token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def create_session_token(
    account_id: str,
    settings: Settings,
    now: Optional[datetime] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed session token bound to an account id"""
    now = now or utcnow()
    expire = now + (expires_delta or timedelta(days=settings.SESSION_TOKEN_EXPIRE_DAYS))
    to_encode = {
        "sub": str(account_id),
        "type": SESSION_TOKEN_TYPE,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str, settings: Settings) -> Optional[dict]:
    """Decode and validate JWT token"""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        return None


def decode_session_token(token: Optional[str], settings: Settings) -> Optional[str]:
    """Return the account id of a valid session token, None otherwise."""
    if not token:
        return None
    payload = decode_token(token, settings)
    if not payload or payload.get("type") != SESSION_TOKEN_TYPE:
        return None
    account_id = payload.get("sub")
    return str(account_id) if account_id else None
