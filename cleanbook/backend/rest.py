"""
HTTP client for the hosted backend's PostgREST-style table API.

Every table is exposed under ``<BACKEND_URL>/rest/v1/<table>`` with
filters passed as query parameters (``scheduled_date=gte.2025-03-01``).
``subscribe`` reports writes made through this client. Changes made by
other clients arrive through the hosted realtime channel, which
``cleanbook.backend.realtime.RealtimeListener`` relays into the same feed
via ``publish_change``.
"""

import logging
from datetime import date
from typing import Any, Callable, Optional

import httpx

from cleanbook.backend.base import (
    ADMIN_SCHEDULE,
    CART_ITEMS,
    CARTS,
    RESERVATIONS,
    BackendError,
    ChangeFeed,
    ChangeListener,
    Row,
    SlotConflictError,
)
from cleanbook.config import settings

logger = logging.getLogger(__name__)

HTTP_CONFLICT = 409


class RestBackend:
    """Backend protocol implementation over httpx."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        base_url = (url or settings.backend.url).rstrip("/")
        api_key = key if key is not None else settings.backend.key
        if client is None:
            if not base_url:
                raise ValueError("BACKEND_URL is not configured")
            client = httpx.Client(
                base_url=f"{base_url}/rest/v1",
                timeout=timeout or settings.backend.timeout_sec,
            )
        client.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })
        self._client = client
        self._feed = ChangeFeed()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RestBackend":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[list[tuple[str, str]]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else {}
        try:
            resp = self._client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.error("Backend %s %s failed: %s", method, table, exc)
            raise BackendError(f"Backend unreachable: {exc}") from exc

        if resp.status_code >= 400:
            detail = _error_message(resp)
            logger.error("Backend %s %s -> %s: %s", method, table, resp.status_code, detail)
            raise BackendError(detail, status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Backend %s %s returned a non-JSON body", method, table)
            raise BackendError(
                f"Unreadable backend response: {exc}", status_code=resp.status_code
            ) from exc

    # ------------------------------------------------------------------ #
    # Reservations
    # ------------------------------------------------------------------ #

    def fetch_active_reservations(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Row]:
        params = [("select", "*"), ("status", "neq.cancelled")]
        if start:
            params.append(("scheduled_date", f"gte.{start.isoformat()}"))
        if end:
            params.append(("scheduled_date", f"lte.{end.isoformat()}"))
        return self._request("GET", RESERVATIONS, params=params) or []

    def list_reservations(self) -> list[Row]:
        params = [("select", "*"), ("order", "created_at.desc")]
        return self._request("GET", RESERVATIONS, params=params) or []

    def get_reservation(self, reservation_id: str) -> Optional[Row]:
        params = [("select", "*"), ("id", f"eq.{reservation_id}")]
        rows = self._request("GET", RESERVATIONS, params=params) or []
        return rows[0] if rows else None

    def insert_reservation(self, row: Row) -> Row:
        try:
            rows = self._request(
                "POST", RESERVATIONS, json=row, prefer="return=representation"
            )
        except BackendError as exc:
            if exc.status_code == HTTP_CONFLICT:
                raise SlotConflictError(str(exc), status_code=HTTP_CONFLICT) from exc
            raise
        record = _single(rows)
        self._feed.publish(RESERVATIONS, "INSERT", record)
        return record

    def update_reservation(self, reservation_id: str, changes: Row) -> Row:
        rows = self._request(
            "PATCH", RESERVATIONS,
            params=[("id", f"eq.{reservation_id}")],
            json=changes,
            prefer="return=representation",
        )
        if not rows:
            raise BackendError(f"Reservation {reservation_id} not found", 404)
        record = _single(rows)
        self._feed.publish(RESERVATIONS, "UPDATE", record)
        return record

    def delete_reservation(self, reservation_id: str) -> None:
        self._request("DELETE", RESERVATIONS, params=[("id", f"eq.{reservation_id}")])
        self._feed.publish(RESERVATIONS, "DELETE", {"id": reservation_id})

    # ------------------------------------------------------------------ #
    # Admin schedule
    # ------------------------------------------------------------------ #

    def fetch_admin_schedule(self) -> list[Row]:
        params = [("select", "*"), ("order", "date.asc")]
        return self._request("GET", ADMIN_SCHEDULE, params=params) or []

    def upsert_admin_schedule(self, rows: list[Row]) -> list[Row]:
        saved = self._request(
            "POST", ADMIN_SCHEDULE,
            params=[("on_conflict", "date,period")],
            json=rows,
            prefer="resolution=merge-duplicates,return=representation",
        ) or []
        for record in saved:
            self._feed.publish(ADMIN_SCHEDULE, "UPSERT", record)
        return saved

    # ------------------------------------------------------------------ #
    # Cart mirror
    # ------------------------------------------------------------------ #

    def insert_cart(self, row: Row) -> Row:
        rows = self._request("POST", CARTS, json=row, prefer="return=representation")
        return _single(rows)

    def insert_cart_items(self, rows: list[Row]) -> list[Row]:
        return self._request(
            "POST", CART_ITEMS, json=rows, prefer="return=representation"
        ) or []

    def subscribe(self, table: str, listener: ChangeListener) -> Callable[[], None]:
        return self._feed.subscribe(table, listener)

    def publish_change(self, table: str, event: str, record: Row) -> None:
        """Fan out a change made outside this client."""
        self._feed.publish(table, event, record)


def _single(rows: Any) -> Row:
    if isinstance(rows, list):
        rows = rows[0] if rows else None
    if not isinstance(rows, dict):
        raise BackendError("Backend returned no row")
    return rows


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
