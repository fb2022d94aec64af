"""Pydantic schemas for Reservation CRUD."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ems.core.formatting import is_valid_date, is_valid_time


def _required_text(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


def _check_date(v: str) -> str:
    v = v.strip()
    if not is_valid_date(v):
        raise ValueError("date must be YYYY-MM-DD")
    return v


def _check_time(v: str) -> str:
    v = v.strip()
    if not is_valid_time(v):
        raise ValueError("time must be HH:mm (00:00-23:59)")
    return v


class ReservationCreate(BaseModel):
    name: str = Field(max_length=200)
    phone: str = Field(max_length=30)
    from_location: str = Field(alias="from", max_length=300)
    to_location: str = Field(alias="to", max_length=300)
    date: str
    time: str
    notes: str = ""

    model_config = {"populate_by_name": True}

    @field_validator("name", "phone", "from_location", "to_location")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _required_text(v)

    @field_validator("date")
    @classmethod
    def _date(cls, v: str) -> str:
        return _check_date(v)

    @field_validator("time")
    @classmethod
    def _time(cls, v: str) -> str:
        return _check_time(v)


class ReservationUpdate(BaseModel):
    """Merge patch: only the fields the client sends are applied."""

    name: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=30)
    from_location: str | None = Field(default=None, alias="from", max_length=300)
    to_location: str | None = Field(default=None, alias="to", max_length=300)
    date: str | None = None
    time: str | None = None
    notes: str | None = None

    model_config = {"populate_by_name": True}

    @field_validator("name", "phone", "from_location", "to_location")
    @classmethod
    def _not_empty(cls, v: str | None) -> str | None:
        return None if v is None else _required_text(v)

    @field_validator("date")
    @classmethod
    def _date(cls, v: str | None) -> str | None:
        return None if v is None else _check_date(v)

    @field_validator("time")
    @classmethod
    def _time(cls, v: str | None) -> str | None:
        return None if v is None else _check_time(v)

    def changes(self) -> dict[str, str]:
        """Fields explicitly supplied with a value; ``null`` counts as absent."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class ReservationRead(BaseModel):
    id: str
    name: str
    phone: str
    from_location: str = Field(serialization_alias="from")
    to_location: str = Field(serialization_alias="to")
    date: str
    time: str
    notes: str
    created_by: int = Field(serialization_alias="createdBy")
    created_at: datetime | None = Field(default=None, serialization_alias="createdAt")

    model_config = {"from_attributes": True}


class DeleteResponse(BaseModel):
    success: bool
    message: str
