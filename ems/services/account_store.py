"""
Account storage — provisioning, login lookup, scoped listing and cascading delete.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from ems.core.exceptions import (AuthenticationError, AuthorizationError,
                                 ConflictError, StoreError, ValidationError)
from ems.core.identity import Role, validate_hierarchy
from ems.core.security import get_password_hash, verify_password
from ems.models.account import Account
from ems.models.reservation import Reservation

logger = logging.getLogger(__name__)


class AccountStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, account_id: int) -> Account | None:
        result = await self.db.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Account | None:
        result = await self.db.execute(select(Account).where(Account.username == username))
        return result.scalar_one_or_none()

    async def create(
        self,
        username: str,
        password: str,
        role: Role,
        parent_id: int | None,
        *,
        account_id: int | None = None,
    ) -> Account:
        """Insert an account; ``ConflictError`` if the username is taken."""
        parent_role = None
        if parent_id is not None:
            parent = await self.get(parent_id)
            if parent is None:
                raise ValidationError(f"Parent account {parent_id} does not exist")
            parent_role = Role.parse(parent.role)
        validate_hierarchy(role, parent_role)

        if await self.get_by_username(username) is not None:
            raise ConflictError()

        account = Account(
            username=username,
            hashed_password=get_password_hash(password),
            role=role.value,
            parent_admin_id=parent_id,
        )
        if account_id is not None:
            account.id = account_id
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            # lost a race against a concurrent insert of the same username
            await self.db.rollback()
            raise ConflictError()
        await self.db.refresh(account)
        logger.info(
            "Created %s account %s (id %d, parent %s)", role.value, username, account.id, parent_id
        )
        return account

    async def authenticate(self, username: str, password: str) -> Account:
        account = await self.get_by_username(username)
        if account is None or not verify_password(password, account.hashed_password):
            raise AuthenticationError("Incorrect username or password")
        return account

    async def list_by_role(self, scope: ColumnElement[bool]) -> list[Account]:
        result = await self.db.execute(select(Account).where(scope).order_by(Account.id.asc()))
        return list(result.scalars().all())

    async def _descendant_ids(self, account_id: int) -> set[int]:
        ids = {account_id}
        frontier = [account_id]
        while frontier:
            result = await self.db.execute(
                select(Account.id).where(Account.parent_admin_id.in_(frontier))
            )
            frontier = [i for i in result.scalars().all() if i not in ids]
            ids.update(frontier)
        return ids

    async def delete(self, account_id: int, scope: ColumnElement[bool] | None = None) -> bool:
        """Delete an account, its descendants and all their reservations.

        Returns ``False`` if no such account exists. Raises
        ``AuthorizationError`` if it exists but falls outside *scope*.
        """
        if await self.get(account_id) is None:
            return False
        if scope is not None:
            allowed = await self.db.execute(
                select(Account.id).where(Account.id == account_id, scope)
            )
            if allowed.scalar_one_or_none() is None:
                raise AuthorizationError("You may not delete this account")

        try:
            doomed = await self._descendant_ids(account_id)
            removed = await self.db.execute(
                delete(Reservation).where(Reservation.created_by.in_(doomed))
            )
            await self.db.execute(delete(Account).where(Account.id.in_(doomed)))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Deleted account %d with %d descendant(s) and %d reservation(s)",
            account_id,
            len(doomed) - 1,
            removed.rowcount or 0,
        )
        return True

    @staticmethod
    def _require_master(account: Account) -> Account:
        if Role.parse(account.role) is not Role.MASTER:
            logger.error(
                "Cannot seed master: account %d (%s) is a %s", account.id, account.username, account.role
            )
            raise StoreError(f"Account '{account.username}' exists and is not the master account")
        return account

    async def ensure_root_master(self, account_id: int, username: str, password: str) -> Account:
        """Seed the single master account; safe to call on every start-up."""
        existing = await self.get(account_id)
        if existing is not None:
            return self._require_master(existing)
        try:
            account = await self.create(username, password, Role.MASTER, None, account_id=account_id)
        except ConflictError:
            account = await self.get_by_username(username)
            if account is None:
                raise
            return self._require_master(account)
        logger.info("Root master account seeded: %s (password: <redacted>)", username)
        return account
