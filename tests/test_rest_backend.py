"""Tests for the HTTP backend, against a mocked transport."""

import asyncio
import json
from datetime import date

import httpx
import pytest

from cleanbook.availability.resolver import AvailabilityResolver
from cleanbook.backend.base import ADMIN_SCHEDULE, RESERVATIONS, BackendError, SlotConflictError
from cleanbook.backend.realtime import RealtimeListener, realtime_url, topic_for
from cleanbook.backend.rest import RestBackend
from cleanbook.cart.store import CartStore
from cleanbook.schemas.cart_schema import Period, ScheduleSelection
from tests.conftest import TODAY, TUESDAY, make_address, make_reservation_row, service

BASE_URL = "https://db.example.ch/rest/v1"
HOST_URL = "https://db.example.ch"


class Recorder:
    """MockTransport handler returning canned responses in order."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json=[])
        return self.responses.pop(0)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def _backend(recorder: Recorder) -> RestBackend:
    client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(recorder))
    return RestBackend(key="anon-key", client=client)


class TestConstruction:
    def test_requires_url_without_client(self):
        with pytest.raises(ValueError, match="BACKEND_URL"):
            RestBackend(url="", key="k")

    def test_auth_headers(self):
        recorder = Recorder()
        _backend(recorder).fetch_admin_schedule()
        headers = recorder.last.headers
        assert headers["apikey"] == "anon-key"
        assert headers["authorization"] == "Bearer anon-key"

    def test_context_manager_closes_client(self):
        client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(Recorder()))
        with RestBackend(key="k", client=client):
            pass
        assert client.is_closed


class TestReads:
    def test_active_reservations_filters(self):
        recorder = Recorder(httpx.Response(200, json=[make_reservation_row(TUESDAY)]))
        rows = _backend(recorder).fetch_active_reservations(TUESDAY, date(2025, 4, 3))
        assert rows[0]["scheduled_date"] == "2025-03-04"
        request = recorder.last
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/reservations"
        assert request.url.params["status"] == "neq.cancelled"
        assert request.url.params.get_list("scheduled_date") == [
            "gte.2025-03-04", "lte.2025-04-03",
        ]

    def test_list_reservations_newest_first(self):
        recorder = Recorder()
        assert _backend(recorder).list_reservations() == []
        assert recorder.last.url.params["order"] == "created_at.desc"

    def test_get_reservation(self):
        recorder = Recorder(httpx.Response(200, json=[{"id": "r1"}]))
        assert _backend(recorder).get_reservation("r1") == {"id": "r1"}
        assert recorder.last.url.params["id"] == "eq.r1"

    def test_get_missing_reservation(self):
        assert _backend(Recorder()).get_reservation("nope") is None

    def test_admin_schedule_ordered_by_date(self):
        recorder = Recorder()
        _backend(recorder).fetch_admin_schedule()
        assert recorder.last.url.path == "/rest/v1/admin_schedule"
        assert recorder.last.url.params["order"] == "date.asc"


class TestWrites:
    def test_insert_returns_representation(self):
        row = make_reservation_row(TUESDAY)
        recorder = Recorder(httpx.Response(201, json=[{**row, "id": "r1"}]))
        saved = _backend(recorder).insert_reservation(row)
        assert saved["id"] == "r1"
        assert recorder.last.method == "POST"
        assert recorder.last.headers["prefer"] == "return=representation"
        assert json.loads(recorder.last.content)["scheduled_time"] == "09:00"

    def test_insert_conflict(self):
        recorder = Recorder(httpx.Response(409, json={"message": "duplicate key value"}))
        with pytest.raises(SlotConflictError) as exc_info:
            _backend(recorder).insert_reservation(make_reservation_row(TUESDAY))
        assert exc_info.value.status_code == 409
        assert "duplicate key" in str(exc_info.value)

    def test_server_error(self):
        recorder = Recorder(httpx.Response(500, text="upstream down"))
        with pytest.raises(BackendError) as exc_info:
            _backend(recorder).insert_reservation(make_reservation_row(TUESDAY))
        assert not isinstance(exc_info.value, SlotConflictError)
        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "upstream down"

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(BackendError, match="unreachable"):
            RestBackend(key="k", client=client).list_reservations()

    def test_update_reservation(self):
        recorder = Recorder(httpx.Response(200, json=[{"id": "r1", "status": "confirmed"}]))
        saved = _backend(recorder).update_reservation("r1", {"status": "confirmed"})
        assert saved["status"] == "confirmed"
        assert recorder.last.method == "PATCH"
        assert recorder.last.url.params["id"] == "eq.r1"

    def test_update_missing_reservation(self):
        with pytest.raises(BackendError) as exc_info:
            _backend(Recorder()).update_reservation("nope", {"status": "confirmed"})
        assert exc_info.value.status_code == 404

    def test_delete_with_empty_body(self):
        recorder = Recorder(httpx.Response(204))
        _backend(recorder).delete_reservation("r1")
        assert recorder.last.method == "DELETE"
        assert recorder.last.url.params["id"] == "eq.r1"

    def test_upsert_admin_schedule(self):
        rows = [{"date": "2025-03-04", "period": "morning", "is_available": False}]
        recorder = Recorder(httpx.Response(201, json=[{**rows[0], "id": "s1"}]))
        saved = _backend(recorder).upsert_admin_schedule(rows)
        assert saved[0]["id"] == "s1"
        request = recorder.last
        assert request.url.params["on_conflict"] == "date,period"
        assert "resolution=merge-duplicates" in request.headers["prefer"]
        assert json.loads(request.content) == rows

    def test_cart_mirror(self):
        recorder = Recorder(
            httpx.Response(201, json=[{"id": "c1"}]),
            httpx.Response(201, json=[{"id": "i1"}, {"id": "i2"}]),
        )
        backend = _backend(recorder)
        assert backend.insert_cart({"session_id": "s"})["id"] == "c1"
        assert len(backend.insert_cart_items([{"cart_id": "c1"}, {"cart_id": "c1"}])) == 2
        assert [r.url.path for r in recorder.requests] == [
            "/rest/v1/carts", "/rest/v1/cart_items",
        ]


class TestMalformedResponses:
    def test_non_json_body(self):
        recorder = Recorder(httpx.Response(200, text="<html>maintenance</html>"))
        with pytest.raises(BackendError) as exc_info:
            _backend(recorder).list_reservations()
        assert exc_info.value.status_code == 200
        assert "Unreadable" in str(exc_info.value)

    def test_insert_without_representation(self):
        with pytest.raises(BackendError, match="no row"):
            _backend(Recorder(httpx.Response(201))).insert_reservation(
                make_reservation_row(TUESDAY)
            )

    def test_cart_insert_without_representation(self):
        with pytest.raises(BackendError, match="no row"):
            _backend(Recorder(httpx.Response(201, json=[]))).insert_cart({"session_id": "s"})

    def test_submit_reports_empty_insert_response(self, storage, contact):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=[])
            return httpx.Response(201)

        client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        store = CartStore(RestBackend(key="k", client=client), storage)
        store.add_item(service("nettoyage-canape"), {"numberOfSeats": "3"}, 140)
        store.set_address(make_address())
        store.set_contact_info(contact)

        result = store.submit(ScheduleSelection(date=TUESDAY, period=Period.MORNING))
        assert result == {"success": False, "error": "Backend returned no row"}


class TestLocalChangeFeed:
    def test_writes_publish_events(self):
        row = make_reservation_row(TUESDAY)
        recorder = Recorder(
            httpx.Response(201, json=[{**row, "id": "r1"}]),
            httpx.Response(201, json=[{"id": "s1", "date": "2025-03-04",
                                       "period": "morning", "is_available": False}]),
            httpx.Response(204),
        )
        backend = _backend(recorder)
        events = []
        backend.subscribe(RESERVATIONS, lambda payload: events.append(payload))
        backend.subscribe(ADMIN_SCHEDULE, lambda payload: events.append(payload))

        backend.insert_reservation(row)
        backend.upsert_admin_schedule([{"date": "2025-03-04", "period": "morning",
                                        "is_available": False}])
        backend.delete_reservation("r1")

        assert [(e["table"], e["event"]) for e in events] == [
            ("reservations", "INSERT"),
            ("admin_schedule", "UPSERT"),
            ("reservations", "DELETE"),
        ]

    def test_failed_write_publishes_nothing(self):
        backend = _backend(Recorder(httpx.Response(409, json={"message": "dup"})))
        events = []
        backend.subscribe(RESERVATIONS, events.append)
        with pytest.raises(SlotConflictError):
            backend.insert_reservation(make_reservation_row(TUESDAY))
        assert events == []


class FakeChannel:
    """Websocket stand-in: replays server frames, then closes."""

    def __init__(self, *frames) -> None:
        self.frames = [f if isinstance(f, str) else json.dumps(f) for f in frames]
        self.sent: list[dict] = []

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def __aenter__(self) -> "FakeChannel":
        return self

    async def __aexit__(self, *exc) -> bool:
        return False

    def __aiter__(self):
        return self._replay()

    async def _replay(self):
        for frame in self.frames:
            yield frame


def _change(table: str, kind: str, record: dict) -> dict:
    key = "old_record" if kind == "DELETE" else "record"
    return {
        "topic": topic_for(table),
        "event": "postgres_changes",
        "payload": {"data": {"type": kind, "table": table, key: record}},
        "ref": None,
    }


def _listener(backend: RestBackend, connect=None) -> RealtimeListener:
    return RealtimeListener(
        backend,
        url=HOST_URL,
        key="anon-key",
        connect=connect or (lambda url: FakeChannel()),
        heartbeat_sec=30,
        reconnect_delay_sec=0.01,
    )


class TestRealtimeChannel:
    def test_socket_url(self):
        assert realtime_url(HOST_URL, "anon-key") == (
            "wss://db.example.ch/realtime/v1/websocket?apikey=anon-key&vsn=1.0.0"
        )
        assert realtime_url("http://localhost:54321/", "k").startswith("ws://localhost:54321/")

    def test_socket_url_requires_backend(self):
        with pytest.raises(ValueError, match="BACKEND_URL"):
            realtime_url("", "k")

    def test_joins_both_tables(self):
        joins = _listener(_backend(Recorder())).join_messages()
        assert [j["topic"] for j in joins] == [
            "realtime:public:reservations", "realtime:public:admin_schedule",
        ]
        assert joins[0]["event"] == "phx_join"
        changes = joins[1]["payload"]["config"]["postgres_changes"]
        assert changes == [{"event": "*", "schema": "public", "table": "admin_schedule"}]

    def test_remote_changes_reach_feed(self):
        backend = _backend(Recorder())
        events = []
        backend.subscribe(RESERVATIONS, events.append)
        backend.subscribe(ADMIN_SCHEDULE, events.append)
        listener = _listener(backend)

        assert listener.handle_message(
            json.dumps(_change(RESERVATIONS, "INSERT", {"id": "r9"}))
        ) == (RESERVATIONS, "INSERT")
        listener.handle_message(json.dumps(_change(RESERVATIONS, "DELETE", {"id": "r8"})))
        listener.handle_message(json.dumps(
            _change(ADMIN_SCHEDULE, "UPDATE", {"id": "s1", "is_available": False})
        ))

        assert events == [
            {"table": "reservations", "event": "INSERT", "record": {"id": "r9"}},
            {"table": "reservations", "event": "DELETE", "record": {"id": "r8"}},
            {"table": "admin_schedule", "event": "UPDATE",
             "record": {"id": "s1", "is_available": False}},
        ]

    def test_legacy_change_frame(self):
        backend = _backend(Recorder())
        events = []
        backend.subscribe(RESERVATIONS, events.append)
        frame = {"topic": topic_for(RESERVATIONS), "event": "INSERT",
                 "payload": {"record": {"id": "r1"}}}
        assert _listener(backend).handle_message(json.dumps(frame)) == (RESERVATIONS, "INSERT")
        assert events[0]["record"] == {"id": "r1"}

    def test_control_frames_are_ignored(self):
        backend = _backend(Recorder())
        events = []
        backend.subscribe(RESERVATIONS, events.append)
        listener = _listener(backend)
        frames = [
            {"topic": topic_for(RESERVATIONS), "event": "phx_reply",
             "payload": {"status": "ok", "response": {}}, "ref": "1"},
            {"topic": "phoenix", "event": "phx_reply",
             "payload": {"status": "ok", "response": {}}, "ref": "3"},
            {"topic": topic_for(RESERVATIONS), "event": "system", "payload": {}},
            _change("carts", "INSERT", {"id": "c1"}),
        ]
        for frame in frames:
            assert listener.handle_message(json.dumps(frame)) is None
        assert listener.handle_message("not json") is None
        assert events == []

    @pytest.mark.asyncio
    async def test_run_refreshes_resolver_on_remote_booking(self):
        row = make_reservation_row(TUESDAY, reservation_id="r9")
        served = {"reservations": 0}

        def handler(request):
            if request.url.path.endswith("/reservations"):
                served["reservations"] += 1
                # Booked by another client after the first load
                return httpx.Response(200, json=[row] if served["reservations"] > 1 else [])
            return httpx.Response(200, json=[])

        client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        backend = RestBackend(key="k", client=client)
        resolver = AvailabilityResolver(backend, today=lambda: TODAY)
        resolver.start()
        assert resolver.is_available(TUESDAY, Period.MORNING)

        stop = asyncio.Event()
        channel = FakeChannel(
            {"topic": topic_for(RESERVATIONS), "event": "phx_reply",
             "payload": {"status": "ok", "response": {}}, "ref": "1"},
            _change(RESERVATIONS, "INSERT", row),
        )
        urls = []

        def connect(url):
            urls.append(url)
            if len(urls) > 1:
                stop.set()
                raise OSError("connection refused")
            return channel

        await asyncio.wait_for(_listener(backend, connect).run(stop), timeout=5)
        resolver.stop()

        assert urls[0].startswith("wss://db.example.ch/realtime/v1/websocket")
        assert [m["event"] for m in channel.sent] == ["phx_join", "phx_join"]
        assert served["reservations"] == 2
        assert not resolver.is_available(TUESDAY, Period.MORNING)
