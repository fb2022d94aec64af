"""Pydantic schemas for JWT tokens."""

from __future__ import annotations

from pydantic import BaseModel

from ems.schemas.account import AccountRead


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(Token):
    account: AccountRead


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutResponse(BaseModel):
    message: str
