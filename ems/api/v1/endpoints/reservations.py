"""
Reservation endpoints.

- GET is open to every role; what comes back is bounded by the caller's scope.
- POST / PUT / DELETE require a role allowed to manage reservations
  (admins; the master only when the access policy says so).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from ems.api.v1.deps import get_identity, get_policy, get_reservation_store
from ems.core.exceptions import NotFoundError, ValidationError
from ems.core.formatting import is_valid_date
from ems.core.identity import Identity
from ems.core.scoping import (AccessPolicy, reservation_owner_for,
                              reservation_visibility, reservation_write_scope)
from ems.models.reservation import Reservation
from ems.schemas.reservation import (DeleteResponse, ReservationCreate,
                                     ReservationRead, ReservationUpdate)
from ems.services.reservation_store import ReservationStore

router = APIRouter(prefix="/reservations", tags=["reservations"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[ReservationRead])
async def list_reservations(
    date: str | None = Query(default=None, description="Only this day (YYYY-MM-DD)"),
    q: str | None = Query(default=None, max_length=100, description="Name or phone contains"),
    identity: Identity | None = Depends(get_identity),
    store: ReservationStore = Depends(get_reservation_store),
) -> list[Reservation]:
    """Reservations visible to the caller, ordered by date, time, creation."""
    scope = reservation_visibility(identity)
    if date is not None and not is_valid_date(date):
        raise ValidationError("date must be YYYY-MM-DD")
    return await store.list(scope, on_date=date, search=q)


@router.get("/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: str,
    identity: Identity | None = Depends(get_identity),
    store: ReservationStore = Depends(get_reservation_store),
) -> Reservation:
    return await store.fetch_in_scope(reservation_id, reservation_visibility(identity))


@router.post("", response_model=ReservationRead, status_code=201)
async def create_reservation(
    body: ReservationCreate,
    identity: Identity | None = Depends(get_identity),
    policy: AccessPolicy = Depends(get_policy),
    store: ReservationStore = Depends(get_reservation_store),
) -> Reservation:
    owner_id = reservation_owner_for(identity, policy)
    return await store.create(body.model_dump(), owner_id)


@router.put("/{reservation_id}", response_model=ReservationRead)
async def update_reservation(
    reservation_id: str,
    body: ReservationUpdate,
    identity: Identity | None = Depends(get_identity),
    policy: AccessPolicy = Depends(get_policy),
    store: ReservationStore = Depends(get_reservation_store),
) -> Reservation:
    """Merge patch: fields left out of the body keep their stored value."""
    scope = reservation_write_scope(identity, policy)
    return await store.update(reservation_id, body.changes(), scope)


@router.delete("/{reservation_id}", response_model=DeleteResponse)
async def delete_reservation(
    reservation_id: str,
    identity: Identity | None = Depends(get_identity),
    policy: AccessPolicy = Depends(get_policy),
    store: ReservationStore = Depends(get_reservation_store),
) -> DeleteResponse:
    scope = reservation_write_scope(identity, policy)
    await store.fetch_in_scope(reservation_id, scope)
    if not await store.delete(reservation_id):
        raise NotFoundError("Reservation not found")
    logger.info("Account %d deleted reservation %s", identity.id, reservation_id)
    return DeleteResponse(success=True, message=f"Reservation '{reservation_id}' deleted")
