"""
Reservation storage — CRUD over the ``reservations`` table.

Listing always comes back ordered by (date, time, created_at) ascending.
Updates are merge patches applied inside one transaction.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Mapping
from datetime import datetime, timezone

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from ems.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ems.core.formatting import is_valid_date, is_valid_time
from ems.models.reservation import Reservation

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "phone", "from_location", "to_location", "date", "time")
MUTABLE_FIELDS = REQUIRED_FIELDS + ("notes",)
ORDERING = (Reservation.date.asc(), Reservation.time.asc(), Reservation.created_at.asc())

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_reservation_id(now: datetime | None = None) -> str:
    """``2024-05-01T09-30-00-123Z--k3j9xq``: timestamp plus random suffix."""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{stamp}--{suffix}"


def _check_formats(values: Mapping[str, str | None]) -> None:
    # string order of date and time must equal chronological order
    if values.get("date") is not None and not is_valid_date(values["date"]):
        raise ValidationError("date must be YYYY-MM-DD")
    if values.get("time") is not None and not is_valid_time(values["time"]):
        raise ValidationError("time must be HH:mm (00:00-23:59)")


class ReservationStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, draft: Mapping[str, str], owner_id: int) -> Reservation:
        missing = [f for f in REQUIRED_FIELDS if not str(draft.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"Required fields missing: {', '.join(missing)}")
        _check_formats(draft)

        reservation = Reservation(
            id=generate_reservation_id(),
            notes=draft.get("notes") or "",
            created_by=owner_id,
            created_at=datetime.now(timezone.utc),
            **{f: draft[f] for f in REQUIRED_FIELDS},
        )
        self.db.add(reservation)
        await self.db.commit()
        await self.db.refresh(reservation)
        logger.info("Reservation %s created by account %d", reservation.id, owner_id)
        return reservation

    async def get(self, reservation_id: str) -> Reservation | None:
        result = await self.db.execute(select(Reservation).where(Reservation.id == reservation_id))
        return result.scalar_one_or_none()

    async def fetch_in_scope(
        self,
        reservation_id: str,
        scope: ColumnElement[bool],
        *,
        for_update: bool = False,
    ) -> Reservation:
        """Load one row, telling "does not exist" apart from "not yours"."""
        query = select(Reservation).where(Reservation.id == reservation_id)
        if for_update:
            query = query.with_for_update()
        reservation = (await self.db.execute(query)).scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("Reservation not found")

        allowed = await self.db.execute(
            select(Reservation.id).where(Reservation.id == reservation_id, scope)
        )
        if allowed.scalar_one_or_none() is None:
            raise AuthorizationError("You may not access this reservation")
        return reservation

    async def list(
        self,
        scope: ColumnElement[bool] | None = None,
        *,
        on_date: str | None = None,
        search: str | None = None,
    ) -> list[Reservation]:
        query = select(Reservation)
        if scope is not None:
            query = query.where(scope)
        if on_date:
            query = query.where(Reservation.date == on_date)
        if search:
            # Escape SQL LIKE metacharacters to prevent wildcard injection
            safe = search.strip().replace("\\", r"\\").replace("%", r"\%").replace("_", r"\_")
            query = query.where(
                or_(
                    Reservation.name.like(f"%{safe}%", escape="\\"),
                    Reservation.phone.like(f"%{safe}%", escape="\\"),
                )
            )
        result = await self.db.execute(query.order_by(*ORDERING))
        return list(result.scalars().all())

    async def update(
        self,
        reservation_id: str,
        patch: Mapping[str, str | None],
        scope: ColumnElement[bool] | None = None,
    ) -> Reservation:
        """Apply a merge patch; unspecified or ``None`` fields keep their value."""
        unknown = set(patch) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be changed: {', '.join(sorted(unknown))}")
        for field in REQUIRED_FIELDS:
            if field in patch and patch[field] is not None and not str(patch[field]).strip():
                raise ValidationError(f"{field} must not be empty")
        _check_formats(patch)

        changes = {k: v for k, v in patch.items() if v is not None}
        try:
            if scope is None:
                query = select(Reservation).where(Reservation.id == reservation_id)
                reservation = (await self.db.execute(query.with_for_update())).scalar_one_or_none()
                if reservation is None:
                    raise NotFoundError("Reservation not found")
            else:
                reservation = await self.fetch_in_scope(reservation_id, scope, for_update=True)

            for field, value in changes.items():
                setattr(reservation, field, value)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(reservation)
        logger.info("Reservation %s updated: %s", reservation_id, sorted(changes))
        return reservation

    async def delete(self, reservation_id: str) -> bool:
        """Return whether a row existed."""
        result = await self.db.execute(delete(Reservation).where(Reservation.id == reservation_id))
        await self.db.commit()
        existed = (result.rowcount or 0) > 0
        if existed:
            logger.info("Reservation %s deleted", reservation_id)
        return existed
