"""
End-to-end tests: a real server on an ephemeral port, real HTTP and
WebSocket clients.
"""

import http.client
import json
import socket
import threading
import time

import pytest
from websockets.exceptions import ConnectionClosed, InvalidStatus
from websockets.sync.client import connect

from taskhub import create_app


def recv_json(ws, timeout: float = 2.0) -> dict:
    return json.loads(ws.recv(timeout=timeout))


def send_json(ws, payload: dict) -> None:
    ws.send(json.dumps(payload))


class TestTaskEndpoints:
    """HTTP task API."""

    def test_add_then_list(self, live_server):
        status, _, task = live_server.request("POST", "/add_task", {"text": "buy milk"})
        assert status == 201
        assert task["text"] == "buy milk"

        status, _, tasks = live_server.request("GET", "/get_tasks")
        assert status == 200
        assert tasks == [task]

    def test_toggle(self, live_server):
        _, _, task = live_server.request("POST", "/add_task", {"text": "walk dog"})

        status, _, toggled = live_server.request("POST", "/toggle_task", {"task_id": task["id"]})

        assert status == 200
        assert toggled["completed"] is True

    def test_empty_text_is_400(self, live_server):
        status, _, body = live_server.request("POST", "/add_task", {"text": "   "})

        assert status == 400
        assert body["status"] == "error"
        assert live_server.request("GET", "/get_tasks")[2] == []

    def test_toggle_unknown_is_404(self, live_server):
        status, _, body = live_server.request("POST", "/toggle_task", {"task_id": "nope"})

        assert status == 404
        assert body["data"] == "Task with id 'nope' not found"

    def test_request_id_header(self, live_server):
        _, headers, _ = live_server.request("GET", "/get_tasks", headers={"X-Request-ID": "abc"})
        assert headers["x-request-id"] == "abc"


class TestDemoEndpoints:

    def test_exact_route(self, live_server):
        status, _, body = live_server.request("GET", "/users")

        assert status == 200
        assert body["data"] == "List of users"

    def test_get_fallback(self, live_server):
        assert live_server.request("GET", "/api/unknown")[2]["data"] == "API GET fallback for /api/unknown"

    def test_catch_all(self, live_server):
        assert live_server.request("DELETE", "/whatever")[2]["data"] == "Catch-all: DELETE /whatever"

    def test_slow_handler_does_not_block_others(self, live_server):
        """/users-slow sleeps in its own worker; /users is answered meanwhile."""
        slow_result = {}

        def call_slow():
            start = time.monotonic()
            slow_result["response"] = live_server.request("POST", "/users-slow", {"message": "bob"})
            slow_result["elapsed"] = time.monotonic() - start

        slow = threading.Thread(target=call_slow)
        slow.start()
        time.sleep(0.1)

        start = time.monotonic()
        status, _, body = live_server.request("GET", "/users")
        fast_elapsed = time.monotonic() - start

        slow.join(timeout=10.0)

        assert status == 200
        assert fast_elapsed < 0.5
        assert slow_result["elapsed"] >= live_server.server.config.slow_delay
        assert slow_result["response"][2]["data"] == "Created user slowly: bob"


class TestProtocolEdges:

    def test_no_route_is_404(self, bare_server):
        status, _, body = bare_server.request("GET", "/nope")

        assert status == 404
        assert body == {"status": "error", "data": "No route matches GET /nope"}

    def test_health(self, live_server):
        status, headers, body = live_server.request("GET", "/health")

        assert status == 200
        assert headers["cache-control"] == "no-store"
        assert set(body["checks"]) == {"task_store", "websocket", "thread_pool"}

    def test_keep_alive_reuses_connection(self, live_server):
        conn = http.client.HTTPConnection("127.0.0.1", live_server.port, timeout=5)
        try:
            for _ in range(3):
                conn.request("GET", "/users")
                response = conn.getresponse()
                response.read()
                assert response.status == 200
                assert response.getheader("Connection") == "keep-alive"
        finally:
            conn.close()

    def test_malformed_request_is_400(self, live_server):
        with socket.create_connection(("127.0.0.1", live_server.port), timeout=5) as sock:
            sock.sendall(b"NONSENSE\r\n\r\n")
            reply = sock.recv(4096)

        assert reply.startswith(b"HTTP/1.1 400 Bad Request")

    def test_plain_get_on_ws_path_is_426(self, live_server):
        status, headers, body = live_server.request("GET", "/ws")

        assert status == 426
        assert headers["upgrade"] == "websocket"
        assert body["status"] == "error"

    def test_upgrade_on_unknown_path_is_routed(self, bare_server):
        url = f"ws://127.0.0.1:{bare_server.port}/elsewhere"

        with pytest.raises(InvalidStatus) as exc_info:
            connect(url, open_timeout=2)

        assert exc_info.value.response.status_code == 404


class TestWebSocket:
    """Real-time task sync."""

    def test_get_tasks_overview(self, live_server):
        live_server.request("POST", "/add_task", {"text": "from http"})

        with connect(live_server.ws_url) as ws:
            send_json(ws, {"action": "get_tasks"})
            envelope = recv_json(ws)

        assert envelope["type"] == "tasks_overview"
        assert [t["text"] for t in envelope["tasks"]] == ["from http"]

    def test_add_task_reaches_every_client(self, live_server):
        with connect(live_server.ws_url) as alice, connect(live_server.ws_url) as bob:
            # Round-trip on both so each is registered before the broadcast
            for ws in (alice, bob):
                send_json(ws, {"action": "get_tasks"})
                assert recv_json(ws)["type"] == "tasks_overview"

            send_json(alice, {"action": "add_task", "text": "buy milk"})

            for ws in (alice, bob):
                envelope = recv_json(ws)
                assert envelope["type"] == "task_added"
                assert envelope["task"]["text"] == "buy milk"
                assert envelope["task"]["completed"] is False
                assert envelope["tasks"] == [envelope["task"]]

    def test_toggle_task_broadcast(self, live_server):
        _, _, task = live_server.request("POST", "/add_task", {"text": "walk dog"})

        with connect(live_server.ws_url) as alice, connect(live_server.ws_url) as bob:
            for ws in (alice, bob):
                send_json(ws, {"action": "get_tasks"})
                recv_json(ws)

            send_json(bob, {"action": "toggle_task", "id": task["id"]})

            for ws in (alice, bob):
                envelope = recv_json(ws)
                assert envelope["type"] == "task_toggled"
                assert envelope["task"] == {"id": task["id"], "text": "walk dog", "completed": True}

        assert live_server.request("GET", "/get_tasks")[2][0]["completed"] is True

    def test_overview_goes_only_to_requester(self, live_server):
        with connect(live_server.ws_url) as alice, connect(live_server.ws_url) as bob:
            send_json(alice, {"action": "get_tasks"})
            assert recv_json(alice)["type"] == "tasks_overview"

            with pytest.raises(TimeoutError):
                bob.recv(timeout=0.3)

    def test_bad_frames_are_ignored(self, live_server):
        """No error reply, no disconnect; the next good command still works."""
        with connect(live_server.ws_url) as ws:
            ws.send("this is not json")
            send_json(ws, {"action": "add_task", "text": ""})
            send_json(ws, {"action": "toggle_task", "id": "missing"})
            send_json(ws, {"action": "launch_rocket"})
            ws.send(b"\x00\x01")

            send_json(ws, {"action": "get_tasks"})
            envelope = recv_json(ws)

        assert envelope == {"type": "tasks_overview", "tasks": []}

    def test_disconnect_unregisters(self, live_server):
        hub = live_server.server.hub

        with connect(live_server.ws_url) as ws:
            send_json(ws, {"action": "get_tasks"})
            recv_json(ws)
            assert hub.connection_count == 1

        deadline = time.monotonic() + 2.0
        while hub.connection_count and time.monotonic() < deadline:
            time.sleep(0.02)
        assert hub.connection_count == 0

    def test_http_add_is_visible_to_ws(self, live_server):
        """HTTP mutations do not broadcast, but the next overview has them."""
        with connect(live_server.ws_url) as ws:
            send_json(ws, {"action": "get_tasks"})
            assert recv_json(ws)["tasks"] == []

            live_server.request("POST", "/add_task", {"text": "via http"})

            send_json(ws, {"action": "get_tasks"})
            envelope = recv_json(ws)

        assert envelope["type"] == "tasks_overview"
        assert envelope["tasks"][0]["text"] == "via http"


class TestWebSocketCapacity:
    """Sessions run outside the HTTP worker pool."""

    def test_http_served_while_sockets_outnumber_workers(self, make_server):
        srv = make_server(min_workers=1, max_workers=2)
        clients = [connect(srv.ws_url) for _ in range(3)]
        try:
            for ws in clients:
                send_json(ws, {"action": "get_tasks"})
                assert recv_json(ws)["type"] == "tasks_overview"

            status, _, body = srv.request("GET", "/users", timeout=3.0)
        finally:
            for ws in clients:
                ws.close()

        assert status == 200
        assert body["data"] == "List of users"

    def test_upgrade_beyond_limit_is_refused(self, make_server):
        srv = make_server(ws_max_connections=1)

        with connect(srv.ws_url) as first:
            send_json(first, {"action": "get_tasks"})
            recv_json(first)

            with pytest.raises(InvalidStatus) as exc_info:
                connect(srv.ws_url, open_timeout=2)

        assert exc_info.value.response.status_code == 503

    def test_dropped_channel_is_disconnected(self, live_server):
        """A channel the hub gives up on is closed, not left half-open."""
        hub = live_server.server.hub

        with connect(live_server.ws_url) as ws:
            send_json(ws, {"action": "get_tasks"})
            recv_json(ws)

            [channel_id] = hub.channel_ids()
            hub.drop(channel_id)

            with pytest.raises(ConnectionClosed):
                ws.recv(timeout=2.0)

        assert hub.connection_count == 0


class TestShutdown:

    def test_going_away_close_code(self, config):
        srv = create_app(config)
        thread = threading.Thread(target=srv.run, daemon=True)
        thread.start()
        assert srv.wait_until_ready(timeout=5.0)

        url = f"ws://127.0.0.1:{srv.address[1]}{config.ws_path}"
        with connect(url) as ws:
            send_json(ws, {"action": "get_tasks"})
            recv_json(ws)

            srv.stop()

            with pytest.raises(ConnectionClosed) as exc_info:
                ws.recv(timeout=5.0)

        thread.join(timeout=10.0)
        assert exc_info.value.rcvd is not None
        assert exc_info.value.rcvd.code == 1001
        assert not thread.is_alive()
