"""Pydantic schemas for the health endpoint."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    ok: bool
    db: bool
    time: datetime
