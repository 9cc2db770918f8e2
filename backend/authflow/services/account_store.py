"""
Account Store

Lookup and persistence of Account documents by email, id, verification code
or reset token. Two backends share one interface:

- SqlAlchemyAccountStore: the database (one session per request)
- InMemoryAccountStore: a process-local dict for local runs and tests

Writes are committed immediately, so a notification failure that happens
after a save cannot undo the state change.
"""
import logging
from datetime import datetime
from typing import Dict, Optional, Protocol

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from authflow.core.exceptions import ConflictError, DependencyError
from authflow.models.account import Account

logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    """Async document-style access to accounts."""

    async def add(self, account: Account) -> Account:
        """Insert a new account. Raises ConflictError on a duplicate email."""
        ...

    async def save(self, account: Account) -> Account:
        """Persist changes to an account previously returned by this store."""
        ...

    async def get_by_id(self, account_id: str) -> Optional[Account]:
        ...

    async def get_by_email(self, email: str) -> Optional[Account]:
        ...

    async def get_by_verification_code(self, code: str, now: datetime) -> Optional[Account]:
        """Account holding this code with an expiry strictly after now."""
        ...

    async def get_by_reset_token(self, token_hash: str, now: datetime) -> Optional[Account]:
        """Account holding this reset token digest with an expiry strictly after now."""
        ...


class SqlAlchemyAccountStore:
    """AccountStore backed by an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _first(self, query) -> Optional[Account]:
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Account lookup failed: {type(e).__name__}")
            raise DependencyError(dependency="account_store") from e
        return result.scalars().first()

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Account write failed: {type(e).__name__}")
            raise DependencyError(dependency="account_store") from e

    async def add(self, account: Account) -> Account:
        self.db.add(account)
        try:
            await self._commit()
        except IntegrityError as e:
            # Unique email index closes the check-then-insert race
            logger.warning(f"Duplicate signup rejected by unique constraint for {account.email}")
            raise ConflictError() from e
        return account

    async def save(self, account: Account) -> Account:
        try:
            await self._commit()
        except IntegrityError as e:
            logger.error(f"Account {account.id} update violated a constraint")
            raise DependencyError(dependency="account_store") from e
        return account

    async def get_by_id(self, account_id: str) -> Optional[Account]:
        return await self._first(select(Account).where(Account.id == account_id))

    async def get_by_email(self, email: str) -> Optional[Account]:
        return await self._first(select(Account).where(Account.email == email))

    async def get_by_verification_code(self, code: str, now: datetime) -> Optional[Account]:
        return await self._first(
            select(Account).where(
                and_(
                    Account.verification_code == code,
                    Account.verification_code_expires_at > now,
                )
            )
        )

    async def get_by_reset_token(self, token_hash: str, now: datetime) -> Optional[Account]:
        return await self._first(
            select(Account).where(
                and_(
                    Account.reset_token_hash == token_hash,
                    Account.reset_token_expires_at > now,
                )
            )
        )


class InMemoryAccountStore:
    """
    AccountStore kept in a dict, keyed by account id.

    Every method body runs without awaiting, so each call is atomic with
    respect to other coroutines on the same event loop.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}

    def __len__(self) -> int:
        return len(self._accounts)

    async def add(self, account: Account) -> Account:
        if any(a.email == account.email for a in self._accounts.values()):
            raise ConflictError()
        self._accounts[account.id] = account
        return account

    async def save(self, account: Account) -> Account:
        if account.id not in self._accounts:
            raise DependencyError(
                f"Account {account.id} is not stored",
                dependency="account_store",
            )
        self._accounts[account.id] = account
        return account

    async def get_by_id(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    async def get_by_email(self, email: str) -> Optional[Account]:
        for account in self._accounts.values():
            if account.email == email:
                return account
        return None

    async def get_by_verification_code(self, code: str, now: datetime) -> Optional[Account]:
        for account in self._accounts.values():
            if account.has_valid_verification_code(code, now):
                return account
        return None

    async def get_by_reset_token(self, token_hash: str, now: datetime) -> Optional[Account]:
        for account in self._accounts.values():
            if account.has_valid_reset_token(token_hash, now):
                return account
        return None
