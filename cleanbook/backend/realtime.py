"""
Realtime change channel of the hosted backend.

The backend pushes row changes over a Phoenix-style websocket at
``<BACKEND_URL>/realtime/v1/websocket``. ``RealtimeListener`` joins one
``postgres_changes`` topic per table and republishes every INSERT, UPDATE
and DELETE into the ``RestBackend`` change feed, so subscribers see writes
made by other clients the same way they see local ones.

Usage:
    backend = RestBackend()
    resolver = AvailabilityResolver(backend)
    resolver.start()
    await RealtimeListener(backend).run(stop_event)
"""

import asyncio
import json
import logging
from typing import Any, Callable, Iterable, Optional, Union
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import WebSocketException

from cleanbook.backend.base import ADMIN_SCHEDULE, RESERVATIONS
from cleanbook.backend.rest import RestBackend
from cleanbook.config import settings

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0.0"
CHANGE_EVENTS = ("INSERT", "UPDATE", "DELETE")


def realtime_url(backend_url: str, key: str) -> str:
    """Build the websocket URL from the backend's HTTP base URL."""
    parts = urlsplit(backend_url.rstrip("/"))
    if not parts.netloc:
        raise ValueError("BACKEND_URL is not configured")
    scheme = "ws" if parts.scheme == "http" else "wss"
    query = urlencode({"apikey": key, "vsn": PROTOCOL_VERSION})
    return urlunsplit((scheme, parts.netloc, f"{parts.path}/realtime/v1/websocket", query, ""))


def topic_for(table: str) -> str:
    return f"realtime:public:{table}"


class RealtimeListener:
    """Relays hosted realtime events into a RestBackend's change feed."""

    def __init__(
        self,
        backend: RestBackend,
        tables: Iterable[str] = (RESERVATIONS, ADMIN_SCHEDULE),
        url: Optional[str] = None,
        key: Optional[str] = None,
        connect: Callable[[str], Any] = websockets.connect,
        heartbeat_sec: Optional[float] = None,
        reconnect_delay_sec: Optional[float] = None,
    ) -> None:
        self._backend = backend
        self.tables = tuple(tables)
        self._key = key if key is not None else settings.backend.key
        self.url = realtime_url(url or settings.backend.url, self._key)
        self._connect = connect
        self.heartbeat_sec = heartbeat_sec or settings.backend.realtime_heartbeat_sec
        self.reconnect_delay_sec = (
            reconnect_delay_sec or settings.backend.realtime_reconnect_sec
        )
        self._topics = {topic_for(table): table for table in self.tables}
        self._ref = 0

    def _next_ref(self) -> str:
        self._ref += 1
        return str(self._ref)

    def join_messages(self) -> list[dict]:
        return [
            {
                "topic": topic,
                "event": "phx_join",
                "payload": {
                    "config": {
                        "postgres_changes": [
                            {"event": "*", "schema": "public", "table": table}
                        ]
                    },
                    "access_token": self._key,
                },
                "ref": self._next_ref(),
            }
            for topic, table in self._topics.items()
        ]

    def heartbeat_message(self) -> dict:
        return {"topic": "phoenix", "event": "heartbeat", "payload": {}, "ref": self._next_ref()}

    def handle_message(self, raw: Union[str, bytes]) -> Optional[tuple[str, str]]:
        """Publish one incoming frame if it carries a row change.

        Returns the (table, event) pair that was published, or None for
        replies, heartbeats and frames for other tables.
        """
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable realtime frame")
            return None
        if not isinstance(message, dict):
            return None

        event = message.get("event")
        payload = message.get("payload") or {}
        if event == "phx_reply":
            if payload.get("status") != "ok":
                logger.error(
                    "Realtime join refused for %s: %s",
                    message.get("topic"), payload.get("response"),
                )
            return None
        if event == "phx_error":
            logger.error("Realtime channel error on %s", message.get("topic"))
            return None

        if event == "postgres_changes":
            change = payload.get("data") or {}
            kind = change.get("type")
        elif event in CHANGE_EVENTS:
            # Older servers put the change directly in the payload
            change = payload
            kind = event
        else:
            return None

        table = change.get("table") or self._topics.get(message.get("topic", ""))
        if kind not in CHANGE_EVENTS or table not in self.tables:
            return None
        record = change.get("old_record") if kind == "DELETE" else change.get("record")
        logger.debug("Realtime %s on %s", kind, table)
        self._backend.publish_change(table, kind, record or {})
        return table, kind

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Stay subscribed until stop_event is set, reconnecting on failure."""
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            try:
                async with self._connect(self.url) as ws:
                    logger.info("Realtime channel connected for %s", ", ".join(self.tables))
                    await self._listen(ws, stop_event)
            except (OSError, WebSocketException) as exc:
                logger.warning(
                    "Realtime channel lost, reconnecting in %.0fs: %s",
                    self.reconnect_delay_sec, exc,
                )
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.reconnect_delay_sec)
            except asyncio.TimeoutError:
                pass
        logger.info("Realtime channel stopped")

    async def _listen(self, ws: Any, stop_event: asyncio.Event) -> None:
        for join in self.join_messages():
            await ws.send(json.dumps(join))

        receiver = asyncio.create_task(self._receive_loop(ws))
        heartbeat = asyncio.create_task(self._heartbeat_loop(ws))
        stopper = asyncio.create_task(stop_event.wait())
        tasks = (receiver, heartbeat, stopper)
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if task is not stopper:
                    task.result()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _receive_loop(self, ws: Any) -> None:
        async for raw in ws:
            # Listeners run blocking refreshes
            await asyncio.to_thread(self.handle_message, raw)

    async def _heartbeat_loop(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_sec)
            await ws.send(json.dumps(self.heartbeat_message()))
