"""Request helpers shared by the API tests."""

from httpx import AsyncClient

RESERVATION = {
    "name": "Kim Minji",
    "phone": "010-1234-5678",
    "from": "Seoul Station",
    "to": "Incheon Airport",
    "date": "2030-05-01",
    "time": "09:30",
}


async def login(client: AsyncClient, username: str, password: str) -> dict:
    """Log in and return an Authorization header for later calls."""
    resp = await client.post(
        "/api/v1/auth/login", json={"username": username, "password": password}
    )
    assert resp.status_code == 200, resp.text
    # Drop the cookies so each call is identified only by the header it sends
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


async def create_account(
    client: AsyncClient, creator: dict, kind: str, username: str, password: str = "pw-1234"
) -> tuple[int, dict]:
    """Provision an admin/user through the API; return (id, auth headers)."""
    resp = await client.post(
        f"/api/v1/accounts/{kind}s",
        json={"username": username, "password": password},
        headers=creator,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"], await login(client, username, password)


async def create_reservation(client: AsyncClient, headers: dict, **overrides) -> dict:
    resp = await client.post(
        "/api/v1/reservations", json={**RESERVATION, **overrides}, headers=headers
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
