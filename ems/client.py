"""
Async API client for the EMS server.

Keeps a local ``ReservationCache`` for calendar / day views. The cache is
never the authority: every mutating call is followed by a full refetch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from ems.core.formatting import format_phone, format_time_input, is_upcoming

logger = logging.getLogger(__name__)

_ERRORS_BY_KIND: dict[str, type["EMSClientError"]] = {}


class EMSClientError(Exception):
    kind = "error"

    def __init__(self, status_code: int, detail: Any) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        _ERRORS_BY_KIND[cls.kind] = cls


class ClientValidationError(EMSClientError):
    kind = "validation_error"


class NotLoggedInError(EMSClientError):
    kind = "authentication_error"


class NotPermittedError(EMSClientError):
    kind = "authorization_error"


class ReservationNotFoundError(EMSClientError):
    kind = "not_found"


class UsernameTakenError(EMSClientError):
    kind = "conflict"


class RateLimitedError(EMSClientError):
    kind = "rate_limited"


class ReservationCache:
    """Reservations keyed by id, replaced wholesale on every refresh."""

    def __init__(self) -> None:
        self._items: dict[str, dict] = {}

    def replace(self, reservations: Iterable[dict]) -> None:
        self._items = {r["id"]: r for r in reservations}

    def clear(self) -> None:
        self._items.clear()

    def get(self, reservation_id: str) -> dict | None:
        return self._items.get(reservation_id)

    def all(self) -> list[dict]:
        """Server order: date, time, creation."""
        return list(self._items.values())

    def on_date(self, day: str) -> list[dict]:
        return [r for r in self._items.values() if r["date"] == day]

    def dates(self) -> set[str]:
        """Days that have at least one reservation (calendar markers)."""
        return {r["date"] for r in self._items.values()}

    def search(self, keyword: str) -> list[dict]:
        keyword = keyword.strip()
        if not keyword:
            return self.all()
        return [r for r in self._items.values() if keyword in r["name"] or keyword in r["phone"]]

    def split_upcoming(self) -> tuple[list[dict], list[dict]]:
        upcoming = [r for r in self._items.values() if is_upcoming(r["date"])]
        past = [r for r in self._items.values() if not is_upcoming(r["date"])]
        return upcoming, past

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, reservation_id: object) -> bool:
        return reservation_id in self._items


class EMSClient:
    def __init__(
        self,
        base_url: str = "http://localhost:4000",
        *,
        api_prefix: str = "/api/v1",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + api_prefix,
            transport=transport,
            timeout=timeout,
        )
        self._token: str | None = None
        self.account: dict | None = None
        self.reservations = ReservationCache()

    async def __aenter__(self) -> "EMSClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── plumbing ────────────────────────────────────────────────────
    async def _request(self, method: str, url: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        resp = await self._http.request(method, url, headers=headers, **kwargs)
        if resp.is_success:
            return resp.json()

        try:
            body = resp.json()
        except ValueError:
            body = {"detail": resp.text}
        if not isinstance(body, dict):
            body = {"detail": body}
        error_cls = _ERRORS_BY_KIND.get(body.get("kind", ""), EMSClientError)
        logger.debug("%s %s failed: %s %s", method, url, resp.status_code, body)
        raise error_cls(resp.status_code, body.get("detail"))

    # ── auth ────────────────────────────────────────────────────────
    async def login(self, username: str, password: str) -> dict:
        data = await self._request("POST", "/auth/login", json={"username": username, "password": password})
        self._token = data["access_token"]
        self.account = data["account"]
        await self.refresh_reservations()
        return self.account

    def logout(self) -> None:
        self._token = None
        self.account = None
        self.reservations.clear()

    # ── reservations ────────────────────────────────────────────────
    async def refresh_reservations(self) -> list[dict]:
        items = await self._request("GET", "/reservations")
        self.reservations.replace(items)
        return self.reservations.all()

    async def create_reservation(
        self,
        *,
        name: str,
        phone: str,
        from_: str,
        to: str,
        date: str,
        time: str,
        notes: str = "",
    ) -> dict:
        payload = {
            "name": name.strip(),
            "phone": format_phone(phone),
            "from": from_.strip(),
            "to": to.strip(),
            "date": date,
            "time": format_time_input(time),
            "notes": notes,
        }
        created = await self._request("POST", "/reservations", json=payload)
        await self.refresh_reservations()
        return created

    async def update_reservation(self, reservation_id: str, **changes: str) -> dict:
        if "from_" in changes:
            changes["from"] = changes.pop("from_")
        if "phone" in changes:
            changes["phone"] = format_phone(changes["phone"])
        if "time" in changes:
            changes["time"] = format_time_input(changes["time"])
        updated = await self._request("PUT", f"/reservations/{reservation_id}", json=changes)
        await self.refresh_reservations()
        return updated

    async def delete_reservation(self, reservation_id: str) -> None:
        await self._request("DELETE", f"/reservations/{reservation_id}")
        await self.refresh_reservations()

    # ── accounts ────────────────────────────────────────────────────
    async def create_admin(self, username: str, password: str) -> dict:
        return await self._request("POST", "/accounts/admins", json={"username": username, "password": password})

    async def create_user(self, username: str, password: str) -> dict:
        return await self._request("POST", "/accounts/users", json={"username": username, "password": password})

    async def list_accounts(self, role: str) -> list[dict]:
        return await self._request("GET", "/accounts", params={"role": role})

    async def delete_account(self, account_id: int) -> None:
        await self._request("DELETE", f"/accounts/{account_id}")
        await self.refresh_reservations()
