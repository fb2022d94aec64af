"""
Reservation model — one transport booking, owned by the account that created it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from ems.db.base import Base


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (Index("ix_reservations_date_time", "date", "time"),)

    id: str = Column(String(64), primary_key=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    phone: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    from_location: str = Column("from", String(300), nullable=False)  # type: ignore[assignment]
    to_location: str = Column("to", String(300), nullable=False)  # type: ignore[assignment]
    date: str = Column(String(10), nullable=False, index=True)  # type: ignore[assignment]  # YYYY-MM-DD
    time: str = Column(String(5), nullable=False)  # type: ignore[assignment]  # HH:mm
    notes: str = Column(Text, nullable=False, default="", server_default="")  # type: ignore[assignment]
    created_by: int = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
