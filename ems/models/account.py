"""
Account model — the master → admin → user hierarchy.

One self-referential table: an admin's ``parent_admin_id`` points at the
master that created it, a user's at the admin (or master) that created it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from ems.db.base import Base


class Account(Base):
    __tablename__ = "accounts"

    id: int = Column(Integer, primary_key=True, autoincrement=True, index=True)  # type: ignore[assignment]
    username: str = Column(String(150), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    role: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # master | admin | user
    parent_admin_id: int | None = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Account id={self.id} {self.role}:{self.username}>"
