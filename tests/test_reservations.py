"""Tests for reservation CRUD endpoints and their role scoping."""

import asyncio

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from ems.api.v1.deps import get_policy
from ems.core.scoping import AccessPolicy
from ems.main import app
from ems.models.reservation import Reservation
from ems.services.reservation_store import ReservationStore
from tests.helpers import RESERVATION, create_account, create_reservation


@pytest.fixture
def master_may_manage():
    app.dependency_overrides[get_policy] = lambda: AccessPolicy(master_can_manage_reservations=True)
    yield
    app.dependency_overrides.pop(get_policy, None)


@pytest.mark.asyncio
async def test_admin_creates_reservation(async_client: AsyncClient, master_headers: dict):
    """POST /reservations by an admin stores the row owned by that admin."""
    admin_id, admin = await create_account(async_client, master_headers, "admin", "A1")
    data = await create_reservation(async_client, admin, notes="wheelchair")

    assert data["name"] == RESERVATION["name"]
    assert data["from"] == "Seoul Station"
    assert data["to"] == "Incheon Airport"
    assert data["time"] == "09:30"
    assert data["notes"] == "wheelchair"
    assert data["createdBy"] == admin_id
    assert data["createdAt"] is not None
    assert "--" in data["id"]


@pytest.mark.asyncio
async def test_notes_default_to_empty(async_client: AsyncClient, master_headers: dict):
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    data = await create_reservation(async_client, admin)
    assert data["notes"] == ""


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "phone", "from", "to", "date", "time"])
async def test_create_requires_every_field(async_client: AsyncClient, master_headers: dict, field: str):
    """Blank or missing required fields are rejected and nothing is stored."""
    _, admin = await create_account(async_client, master_headers, "admin", "A1")

    blank = await async_client.post(
        "/api/v1/reservations", json={**RESERVATION, field: "  "}, headers=admin
    )
    missing = await async_client.post(
        "/api/v1/reservations",
        json={k: v for k, v in RESERVATION.items() if k != field},
        headers=admin,
    )
    assert blank.status_code == 422
    assert blank.json()["kind"] == "validation_error"
    assert missing.status_code == 422

    listed = await async_client.get("/api/v1/reservations", headers=admin)
    assert listed.json() == []


@pytest.mark.asyncio
async def test_time_must_be_zero_padded(async_client: AsyncClient, master_headers: dict):
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    for bad in ("9:30", "24:00", "12:60", "0930"):
        resp = await async_client.post(
            "/api/v1/reservations", json={**RESERVATION, "time": bad}, headers=admin
        )
        assert resp.status_code == 422, bad


@pytest.mark.asyncio
async def test_list_is_ordered_by_date_time_created(async_client: AsyncClient, master_headers: dict):
    """Listing always comes back as (date, time, createdAt) ascending."""
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    await create_reservation(async_client, admin, name="c", date="2030-05-02", time="08:00")
    await create_reservation(async_client, admin, name="b", date="2030-05-01", time="18:00")
    await create_reservation(async_client, admin, name="a", date="2030-05-01", time="07:15")
    await create_reservation(async_client, admin, name="b2", date="2030-05-01", time="18:00")

    resp = await async_client.get("/api/v1/reservations", headers=admin)
    assert resp.status_code == 200
    rows = resp.json()
    assert [r["name"] for r in rows] == ["a", "b", "b2", "c"]
    keys = [(r["date"], r["time"], r["createdAt"]) for r in rows]
    assert keys == sorted(keys)


@pytest.mark.asyncio
async def test_list_filters_by_date_and_keyword(async_client: AsyncClient, master_headers: dict):
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    await create_reservation(async_client, admin, name="Park", phone="010-1111-2222", date="2030-06-01")
    await create_reservation(async_client, admin, name="Lee", phone="010-3333-4444", date="2030-06-02")

    by_day = await async_client.get("/api/v1/reservations?date=2030-06-02", headers=admin)
    assert [r["name"] for r in by_day.json()] == ["Lee"]

    by_phone = await async_client.get("/api/v1/reservations?q=1111", headers=admin)
    assert [r["name"] for r in by_phone.json()] == ["Park"]

    wildcard = await async_client.get("/api/v1/reservations?q=%25", headers=admin)
    assert wildcard.json() == []

    bad_day = await async_client.get("/api/v1/reservations?date=June", headers=admin)
    assert bad_day.status_code == 400


@pytest.mark.asyncio
async def test_update_is_a_merge_patch(async_client: AsyncClient, master_headers: dict):
    """PUT only changes the fields that were sent."""
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    created = await create_reservation(async_client, admin)

    resp = await async_client.put(
        f"/api/v1/reservations/{created['id']}",
        json={"time": "10:45", "notes": "oxygen", "phone": None},
        headers=admin,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["time"] == "10:45"
    assert data["notes"] == "oxygen"
    assert data["phone"] == created["phone"]
    assert data["name"] == created["name"]
    assert data["id"] == created["id"]
    assert data["createdBy"] == created["createdBy"]
    assert data["createdAt"] == created["createdAt"]


@pytest.mark.asyncio
async def test_empty_patch_is_idempotent(async_client: AsyncClient, master_headers: dict):
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    created = await create_reservation(async_client, admin)
    url = f"/api/v1/reservations/{created['id']}"

    once = await async_client.put(url, json={}, headers=admin)
    twice = await async_client.put(url, json={}, headers=admin)
    assert once.status_code == twice.status_code == 200
    assert once.json() == twice.json() == created


@pytest.mark.asyncio
async def test_concurrent_patches_keep_both_changes(
    file_session_factory, async_client: AsyncClient, master_headers: dict
):
    """Two PUTs on different fields at the same time: neither write is lost."""
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    created = await create_reservation(async_client, admin)
    url = f"/api/v1/reservations/{created['id']}"

    for i in range(5):
        notes, time = f"oxygen #{i}", f"1{i}:45"
        first, second = await asyncio.gather(
            async_client.put(url, json={"notes": notes}, headers=admin),
            async_client.put(url, json={"time": time}, headers=admin),
        )
        assert first.status_code == 200, first.text
        assert second.status_code == 200, second.text

        stored = (await async_client.get(url, headers=admin)).json()
        assert stored["notes"] == notes
        assert stored["time"] == time
        assert stored["name"] == RESERVATION["name"]
        assert stored["from"] == RESERVATION["from"]
        assert stored["date"] == RESERVATION["date"]


@pytest.mark.asyncio
async def test_over_long_text_is_a_validation_error(async_client: AsyncClient, master_headers: dict):
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    too_long = {"name": "x" * 201, "phone": "0" * 31, "from": "y" * 301}
    for field, value in too_long.items():
        resp = await async_client.post(
            "/api/v1/reservations", json={**RESERVATION, field: value}, headers=admin
        )
        assert resp.status_code == 422, field
        assert resp.json()["kind"] == "validation_error"

    created = await create_reservation(async_client, admin)
    resp = await async_client.put(
        f"/api/v1/reservations/{created['id']}", json={"phone": "0" * 31}, headers=admin
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_update_rejects_blanking_required_field(async_client: AsyncClient, master_headers: dict):
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    created = await create_reservation(async_client, admin)
    resp = await async_client.put(
        f"/api/v1/reservations/{created['id']}", json={"name": ""}, headers=admin
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_delete_reservation(async_client: AsyncClient, master_headers: dict):
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    created = await create_reservation(async_client, admin)

    resp = await async_client.delete(f"/api/v1/reservations/{created['id']}", headers=admin)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    again = await async_client.delete(f"/api/v1/reservations/{created['id']}", headers=admin)
    assert again.status_code == 404
    assert again.json()["kind"] == "not_found"


@pytest.mark.asyncio
async def test_not_found_is_distinct_from_not_permitted(async_client: AsyncClient, master_headers: dict):
    """A missing id is 404; somebody else's reservation is 403."""
    _, a1 = await create_account(async_client, master_headers, "admin", "A1")
    _, a2 = await create_account(async_client, master_headers, "admin", "A2")
    theirs = await create_reservation(async_client, a1)

    for method in ("get", "put", "delete"):
        kwargs = {"json": {"notes": "x"}} if method == "put" else {}
        missing = await async_client.request(
            method.upper(), "/api/v1/reservations/nope", headers=a2, **kwargs
        )
        foreign = await async_client.request(
            method.upper(), f"/api/v1/reservations/{theirs['id']}", headers=a2, **kwargs
        )
        assert missing.status_code == 404, method
        assert foreign.status_code == 403, method
        assert foreign.json()["kind"] == "authorization_error"

    untouched = await async_client.get(f"/api/v1/reservations/{theirs['id']}", headers=a1)
    assert untouched.json()["notes"] == ""


@pytest.mark.asyncio
async def test_user_cannot_create_reservation(async_client: AsyncClient, master_headers: dict, db_session):
    """A user-role requester gets 403 and no row is written."""
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    _, user = await create_account(async_client, admin, "user", "U1")

    resp = await async_client.post("/api/v1/reservations", json=RESERVATION, headers=user)
    assert resp.status_code == 403
    assert resp.json()["kind"] == "authorization_error"

    count = await db_session.execute(select(func.count(Reservation.id)))
    assert count.scalar() == 0


@pytest.mark.asyncio
async def test_user_cannot_edit_or_delete(async_client: AsyncClient, master_headers: dict):
    _, admin = await create_account(async_client, master_headers, "admin", "A1")
    _, user = await create_account(async_client, admin, "user", "U1")
    created = await create_reservation(async_client, admin)

    put = await async_client.put(f"/api/v1/reservations/{created['id']}", json={"notes": "x"}, headers=user)
    delete = await async_client.delete(f"/api/v1/reservations/{created['id']}", headers=user)
    assert put.status_code == 403
    assert delete.status_code == 403


@pytest.mark.asyncio
async def test_user_sees_own_and_parent_reservations(
    async_client: AsyncClient, master_headers: dict, session_factory
):
    a1_id, a1 = await create_account(async_client, master_headers, "admin", "A1")
    _, a2 = await create_account(async_client, master_headers, "admin", "A2")
    u1_id, u1 = await create_account(async_client, a1, "user", "U1")

    from_parent = await create_reservation(async_client, a1, name="parent")
    await create_reservation(async_client, a2, name="stranger")
    async with session_factory() as session:
        own = await ReservationStore(session).create(
            {**RESERVATION, "from_location": "Home", "to_location": "Clinic", "name": "own"}, u1_id
        )

    resp = await async_client.get("/api/v1/reservations", headers=u1)
    ids = {r["id"] for r in resp.json()}
    assert ids == {from_parent["id"], own.id}


@pytest.mark.asyncio
async def test_admin_sees_reservations_of_its_users_only(
    async_client: AsyncClient, master_headers: dict, session_factory
):
    """A1 → U1; U1's reservation shows up for A1 and never for A2."""
    _, a1 = await create_account(async_client, master_headers, "admin", "A1")
    _, a2 = await create_account(async_client, master_headers, "admin", "A2")
    u1_id, _ = await create_account(async_client, a1, "user", "U1")

    async with session_factory() as session:
        by_user = await ReservationStore(session).create(
            {**RESERVATION, "from_location": "Home", "to_location": "Clinic"}, u1_id
        )

    seen_by_a1 = await async_client.get("/api/v1/reservations", headers=a1)
    seen_by_a2 = await async_client.get("/api/v1/reservations", headers=a2)
    assert by_user.id in {r["id"] for r in seen_by_a1.json()}
    assert by_user.id not in {r["id"] for r in seen_by_a2.json()}

    # and A1 may manage it
    resp = await async_client.put(f"/api/v1/reservations/{by_user.id}", json={"notes": "ok"}, headers=a1)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_master_sees_everything_but_is_read_only_by_default(
    async_client: AsyncClient, master_headers: dict
):
    _, a1 = await create_account(async_client, master_headers, "admin", "A1")
    _, a2 = await create_account(async_client, master_headers, "admin", "A2")
    r1 = await create_reservation(async_client, a1)
    r2 = await create_reservation(async_client, a2)

    listed = await async_client.get("/api/v1/reservations", headers=master_headers)
    assert {r["id"] for r in listed.json()} == {r1["id"], r2["id"]}

    create = await async_client.post("/api/v1/reservations", json=RESERVATION, headers=master_headers)
    edit = await async_client.put(f"/api/v1/reservations/{r1['id']}", json={"notes": "x"}, headers=master_headers)
    delete = await async_client.delete(f"/api/v1/reservations/{r1['id']}", headers=master_headers)
    assert create.status_code == 403
    assert edit.status_code == 403
    assert delete.status_code == 403


@pytest.mark.asyncio
async def test_master_manages_when_policy_allows(
    async_client: AsyncClient, master_headers: dict, master_may_manage
):
    _, a1 = await create_account(async_client, master_headers, "admin", "A1")
    theirs = await create_reservation(async_client, a1)

    mine = await create_reservation(async_client, master_headers, name="by master")
    assert mine["createdBy"] == 1

    edit = await async_client.put(f"/api/v1/reservations/{theirs['id']}", json={"notes": "x"}, headers=master_headers)
    assert edit.status_code == 200
    delete = await async_client.delete(f"/api/v1/reservations/{theirs['id']}", headers=master_headers)
    assert delete.status_code == 200


@pytest.mark.asyncio
async def test_anonymous_requests_must_log_in(async_client: AsyncClient):
    """No identity on a protected operation is 401, never a crash."""
    listed = await async_client.get("/api/v1/reservations")
    created = await async_client.post("/api/v1/reservations", json=RESERVATION)
    assert listed.status_code == 401
    assert created.status_code == 401
    assert listed.json()["kind"] == "authentication_error"
