"""
FastAPI dependencies — identity resolution, access policy and database session.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.config import settings
from ems.core.exceptions import AuthenticationError, AuthorizationError
from ems.core.identity import Identity, Role
from ems.core.scoping import AccessPolicy
from ems.core.security import decode_token
from ems.db.session import async_session_factory
from ems.models.account import Account
from ems.services.account_store import AccountStore
from ems.services.reservation_store import ReservationStore

logger = logging.getLogger(__name__)

# auto_error=False: a missing token means "anonymous", not an immediate 401
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/auth/login", auto_error=False
)

_policy = AccessPolicy.from_settings(settings)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_policy() -> AccessPolicy:
    return _policy


def get_account_store(db: AsyncSession = Depends(get_db)) -> AccountStore:
    return AccountStore(db)


def get_reservation_store(db: AsyncSession = Depends(get_db)) -> ReservationStore:
    return ReservationStore(db)


# ── Identity ────────────────────────────────────────────────────────
def _extract_token(header_token: str | None, cookie_token: str | None) -> str | None:
    # Priority: Header > Cookie
    if header_token:
        return header_token
    if cookie_token:
        return cookie_token.split(" ", 1)[1] if cookie_token.startswith("Bearer ") else cookie_token
    return None


async def get_optional_account(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    accounts: AccountStore = Depends(get_account_store),
) -> Account | None:
    """Resolve the caller's account, or ``None`` for an anonymous request.

    Missing, malformed, expired or dangling tokens all resolve to anonymous.
    """
    raw = _extract_token(token, access_token)
    if not raw:
        return None
    account_id = decode_token(raw)
    if account_id is None:
        logger.debug("Ignoring invalid access token")
        return None
    return await accounts.get(account_id)


async def get_identity(
    account: Account | None = Depends(get_optional_account),
) -> Identity | None:
    """The (id, role) descriptor, read from the store rather than the client."""
    if account is None:
        return None
    role = Role.parse(account.role)
    if role is None:
        logger.warning("Account %d carries unknown role %r", account.id, account.role)
        raise AuthorizationError()
    return Identity(id=account.id, role=role)


async def get_current_account(
    account: Account | None = Depends(get_optional_account),
) -> Account:
    if account is None:
        raise AuthenticationError()
    return account
