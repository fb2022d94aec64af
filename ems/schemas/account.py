"""Pydantic schemas for Account provisioning and login."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator


class AccountCreate(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username must not be empty")
        if len(v) > 150:
            raise ValueError("Username must not exceed 150 characters")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password must not be empty")
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class AccountRead(BaseModel):
    id: int
    username: str
    role: str
    parent_admin_id: int | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
