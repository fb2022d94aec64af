"""
Auth endpoints — login, token refresh, logout and the current account.

Login hands out a signed access/refresh token pair; every later request
is identified from that token, never from a client-asserted role.
"""

import logging

from fastapi import APIRouter, Cookie, Depends, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from ems.api.v1.deps import get_account_store, get_current_account
from ems.core.config import settings
from ems.core.exceptions import AuthenticationError, ValidationError
from ems.core.security import REFRESH, create_access_token, create_refresh_token, decode_token
from ems.models.account import Account
from ems.schemas.account import AccountRead, LoginRequest
from ems.schemas.token import LoginResponse, LogoutResponse, RefreshRequest, Token
from ems.services.account_store import AccountStore

# Rate limiter — keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _set_auth_cookies(response: Response, access: str, refresh: str) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access}",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    accounts: AccountStore = Depends(get_account_store),
) -> LoginResponse:
    """Check username/password and issue tokens (also set as HttpOnly cookies)."""
    if not body.username.strip() or not body.password:
        raise ValidationError("Both username and password are required")

    try:
        account = await accounts.authenticate(body.username.strip(), body.password)
    except AuthenticationError:
        logger.warning("Failed login for %r from %s", body.username, get_remote_address(request))
        raise

    access_token = create_access_token(account.id)
    refresh_token = create_refresh_token(account.id)
    _set_auth_cookies(response, access_token, refresh_token)
    logger.info("Account %d (%s) logged in", account.id, account.role)

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        account=AccountRead.model_validate(account),
    )


@router.post("/refresh", response_model=Token)
@limiter.limit(settings.REFRESH_RATE_LIMIT)
async def refresh_access_token(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(None, alias="refresh_token"),
    accounts: AccountStore = Depends(get_account_store),
) -> Token:
    # Priority: Body > Cookie
    token_str = body.refresh_token if body and body.refresh_token else refresh_token_cookie
    if not token_str:
        raise AuthenticationError("Refresh token missing")

    account_id = decode_token(token_str, REFRESH)
    if account_id is None:
        raise AuthenticationError("Invalid or expired refresh token")

    account = await accounts.get(account_id)
    if account is None:
        raise AuthenticationError("Account no longer exists")

    new_access = create_access_token(account.id)
    new_refresh = create_refresh_token(account.id)
    _set_auth_cookies(response, new_access, new_refresh)
    return Token(access_token=new_access, refresh_token=new_refresh)


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response) -> LogoutResponse:
    """Clear auth cookies and end the session."""
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return LogoutResponse(message="Logged out")


@router.get("/me", response_model=AccountRead)
async def read_current_account(
    current: Account = Depends(get_current_account),
) -> Account:
    """Return the currently authenticated account."""
    return current
