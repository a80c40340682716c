"""End-to-end API tests through the FastAPI app."""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from squatboard.api.common import resolve_reference_day
from squatboard.main import app


@pytest.fixture
def client():
    return TestClient(app)


def signup(client, user_id, username):
    resp = client.post("/api/users", json={"userId": user_id, "username": username})
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestUsers:
    def test_check_then_signup(self, client):
        assert client.get("/api/users/check", params={"username": "Alice"}).json()["available"] is True
        body = signup(client, "u1", "Alice")
        assert body == {"success": True, "user": {"userId": "u1", "username": "Alice"}}
        assert client.get("/api/users/check", params={"username": "alice"}).json()["available"] is False

    def test_duplicate_name_conflicts(self, client):
        signup(client, "u1", "Alice")
        resp = client.post("/api/users", json={"userId": "u2", "username": "ALICE"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_blank_name_is_invalid(self, client):
        resp = client.post("/api/users", json={"userId": "u1", "username": "   "})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_input"

    def test_missing_fields_are_validation_errors(self, client):
        resp = client.post("/api/users", json={"username": "Alice"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_stats_for_unknown_user(self, client):
        resp = client.get("/api/users/ghost/stats")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "unknown_user"


class TestCompletions:
    def test_record_today_and_duplicate(self, client):
        signup(client, "u1", "Alice")
        first = client.post("/api/completions", json={"userId": "u1"}).json()
        assert first["success"] is True
        assert first["duplicate"] is False
        assert first["date"] == resolve_reference_day().isoformat()

        again = client.post("/api/completions", json={"userId": "u1"}).json()
        assert again["duplicate"] is True

    def test_future_day_rejected(self, client):
        signup(client, "u1", "Alice")
        future = resolve_reference_day() + timedelta(days=5)
        resp = client.post("/api/completions", json={"userId": "u1", "date": future.isoformat()})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_input"

    def test_unknown_user(self, client):
        resp = client.post("/api/completions", json={"userId": "ghost"})
        assert resp.status_code == 404

    def test_replay(self, client):
        signup(client, "u1", "Alice")
        today = resolve_reference_day()
        resp = client.post("/api/completions/replay", json={
            "userId": "u1",
            "dates": [(today - timedelta(days=1)).isoformat(), today.isoformat(), "nope"],
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["recorded"] == 2
        assert body["rejected"] == 1
        assert [r["status"] for r in body["results"]] == ["recorded", "recorded", "rejected"]

    def test_replay_too_many_days(self, client):
        signup(client, "u1", "Alice")
        today = resolve_reference_day()
        dates = [(today - timedelta(days=n)).isoformat() for n in range(91)]
        resp = client.post("/api/completions/replay", json={"userId": "u1", "dates": dates})
        assert resp.status_code == 413
        assert resp.json()["error"]["code"] == "payload_too_large"
        assert client.get("/api/users/u1/stats").json()["data"]["totalCompletions"] == 0

    def test_replay_requires_dates(self, client):
        signup(client, "u1", "Alice")
        resp = client.post("/api/completions/replay", json={"userId": "u1", "dates": []})
        assert resp.status_code == 400


class TestBoard:
    def test_board_for_pinned_day(self, client):
        signup(client, "a", "Ann")
        signup(client, "b", "Ben")
        today = resolve_reference_day()
        client.post("/api/completions/replay", json={
            "userId": "a",
            "dates": [(today - timedelta(days=n)).isoformat() for n in range(3)],
        })

        resp = client.get("/api/board", params={"days": 3, "viewer": "b", "day": today.isoformat()})
        assert resp.status_code == 200
        body = resp.json()
        assert body["referenceDay"] == today.isoformat()
        assert len(body["dates"]) == 3
        assert [u["userId"] for u in body["users"]] == ["b", "a"]
        assert body["users"][1]["days"] == [True, True, True]
        assert body["stats"] == {
            "longestStreak": 3,
            "streakHolder": "Ann",
            "userStreaks": {"a": 3, "b": 0},
            "activeToday": 1,
        }

    def test_board_defaults(self, client):
        body = client.get("/api/board").json()
        assert len(body["dates"]) == 10
        assert body["users"] == []

    def test_board_past_day(self, client):
        signup(client, "a", "Ann")
        client.post("/api/completions/replay", json={"userId": "a", "dates": ["2024-01-01", "2024-01-02", "2024-01-03"]})
        body = client.get("/api/board", params={"day": "2024-01-05"}).json()
        assert body["stats"]["longestStreak"] == 0
        body = client.get("/api/board", params={"day": "2024-01-03"}).json()
        assert body["stats"]["longestStreak"] == 3

    @pytest.mark.parametrize("params", [{"days": 0}, {"days": 91}, {"sort": "age"}, {"day": "05/01/2024"}])
    def test_bad_board_params(self, client, params):
        resp = client.get("/api/board", params=params)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_input"


class TestSweep:
    def test_sweep_dry_run_and_live(self, client, store):
        from datetime import datetime, timezone

        store.claim_user("old", "Old", datetime(2020, 1, 1, tzinfo=timezone.utc))
        signup(client, "new", "New")

        dry = client.post("/api/users/sweep", json={"idleDays": 30, "dryRun": True}).json()
        assert dry["removedUsers"] == ["old"]
        assert dry["dryRun"] is True

        live = client.post("/api/users/sweep", json={"idleDays": 30}).json()
        assert live["removedCount"] == 1
        assert [u["userId"] for u in client.get("/api/board").json()["users"]] == ["new"]

    def test_sweep_without_body_uses_default(self, client):
        resp = client.post("/api/users/sweep")
        assert resp.status_code == 200
        assert resp.json()["removedCount"] == 0


class TestRealtime:
    def test_ws_greeting_and_pong(self, client):
        with client.websocket_connect("/api/ws") as ws:
            hello = ws.receive_json()
            assert hello["type"] == "connected"
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_ws_receives_board_update_on_signup(self, client):
        with client.websocket_connect("/api/ws") as ws:
            ws.receive_json()
            signup(client, "u1", "Alice")
            update = ws.receive_json()
            assert update["type"] == "update"
            assert update["users"][0]["username"] == "Alice"

    def test_ws_payload_too_large(self, client):
        with client.websocket_connect("/api/ws") as ws:
            ws.receive_json()
            ws.send_text("x" * 5000)
            err = ws.receive_json()
            assert err == {
                "type": "error",
                "code": "payload_too_large",
                "message": "WS message too large",
                "request_id": err["request_id"],
            }

    def test_ws_connection_cap(self, client):
        from squatboard.realtime.hub import hub

        hub.configure(1)
        with client.websocket_connect("/api/ws") as first:
            first.receive_json()
            with client.websocket_connect("/api/ws") as second:
                err = second.receive_json()
                assert err["code"] == "limit_exceeded"


class TestOps:
    def test_healthz(self, client):
        assert client.get("/healthz").json()["status"] == "ok"

    def test_readyz(self, client):
        assert client.get("/readyz").status_code == 200

    def test_readyz_store_down(self, client):
        from squatboard.core.errors import StoreUnavailableError
        from squatboard.features.store.base import set_store
        from squatboard.features.store.memory import InMemoryLedgerStore

        class DownStore(InMemoryLedgerStore):
            def ping(self):
                raise StoreUnavailableError("down")

        set_store(DownStore())
        assert client.get("/readyz").status_code == 503

    def test_metrics_counts_requests(self, client):
        client.get("/healthz")
        text = client.get("/metrics").text
        assert 'http_requests_total{method="GET",path="/healthz",status="200"} 1.0' in text

    def test_store_outage_is_503(self, client):
        from squatboard.features.store.base import set_store
        from squatboard.features.store.redis_store import RedisLedgerStore
        from squatboard.tests.mocks import FakeRedis

        fake = FakeRedis()
        fake.down = True
        set_store(RedisLedgerStore(fake))
        resp = client.get("/api/board")
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "store_unavailable"
