# tests/test_api.py
"""HTTP and WebSocket tests for the access and stats routers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
from app.routers.access import offer_latest
from conftest import make_new_event

GUARD = {"id": "G1", "name": "Gate Guard"}


def entry_body(id_number="S1", direction="in", role="student", name="Jane Smith", confirm=False):
    return {
        "entry": {"name": name, "role": role, "direction": direction, "id_number": id_number},
        "operator": GUARD,
        "confirm": confirm,
    }


class TestRecordEntryEndpoint:
    def test_records_entry(self, client):
        resp = client.post("/api/v1/access/entries", json=entry_body())
        assert resp.status_code == 201
        data = resp.json()
        assert data["person_key"] == "S1"
        assert data["direction"] == "in"
        assert data["recorded_by_name"] == "Gate Guard"
        assert data["identity"] == {"role": "student", "enrollment_number": "S1"}

    def test_teacher_identity_uses_employee_id(self, client):
        resp = client.post("/api/v1/access/entries", json=entry_body("T1", role="teacher", name="John Doe"))
        assert resp.json()["identity"] == {"role": "teacher", "employee_id": "T1"}

    def test_duplicate_in_returns_409_until_confirmed(self, client):
        client.post("/api/v1/access/entries", json=entry_body())

        resp = client.post("/api/v1/access/entries", json=entry_body())
        assert resp.status_code == 409
        assert resp.json()["kind"] == "duplicate_in"
        assert resp.json()["current_status"] == "in"

        resp = client.post("/api/v1/access/entries", json=entry_body(confirm=True))
        assert resp.status_code == 201
        assert len(client.get("/api/v1/access/people/S1/entries").json()) == 2

    def test_out_without_in_returns_409(self, client):
        resp = client.post("/api/v1/access/entries", json=entry_body(direction="out"))
        assert resp.status_code == 409
        assert resp.json()["kind"] == "not_checked_in"

    def test_blank_name_is_422(self, client):
        resp = client.post("/api/v1/access/entries", json=entry_body(name="  "))
        assert resp.status_code == 422

    def test_guard_role_rejected_by_schema(self, client):
        resp = client.post("/api/v1/access/entries", json=entry_body(role="guard"))
        assert resp.status_code == 422


class TestQueryEndpoints:
    def test_today_entries_newest_first(self, client, store, clock):
        store.append(make_new_event("T1", role="teacher"))
        clock.advance(minutes=30)
        store.append(make_new_event("S1"))
        keys = [e["person_key"] for e in client.get("/api/v1/access/entries/today").json()]
        assert keys == ["S1", "T1"]

    def test_window_query(self, client, store, clock):
        store.append(make_new_event("S1"))
        clock.advance(days=1)
        store.append(make_new_event("S2"))
        resp = client.get("/api/v1/access/entries",
                          params={"start": "2026-02-20T00:00:00", "end": "2026-02-21T00:00:00"})
        assert [e["person_key"] for e in resp.json()] == ["S1"]

    def test_window_query_returns_whole_window_without_limit(self, client, store, clock):
        for i in range(60):
            store.append(make_new_event(f"S{i}"))
            clock.advance(seconds=1)
        params = {"start": "2026-02-20T00:00:00", "end": "2026-02-21T00:00:00"}
        assert len(client.get("/api/v1/access/entries", params=params).json()) == 60
        assert len(client.get("/api/v1/access/entries", params={**params, "limit": 5}).json()) == 5

    def test_person_status(self, client, store):
        assert client.get("/api/v1/access/people/S1/status").json()["status"] == "unknown"
        store.append(make_new_event("S1"))
        resp = client.get("/api/v1/access/people/S1/status", params={"role": "student"})
        assert resp.json() == {"person_key": "S1", "role": "student", "status": "in"}


class TestStatsEndpoints:
    def test_today_stats(self, client, store, clock):
        clock.set(hour=8, minute=30)
        store.append(make_new_event("T1", role="teacher"))
        clock.set(hour=9, minute=0)
        store.append(make_new_event("S1"))

        data = client.get("/api/v1/stats/today").json()
        assert data == {"date": "2026-02-20", "total_entries": 2, "students_in": 1,
                        "students_out": 0, "teachers_in": 1, "teachers_out": 0}

    def test_empty_today(self, client):
        data = client.get("/api/v1/stats/today").json()
        assert data["total_entries"] == 0

    def test_daily_stats_for_past_day(self, client, store, clock):
        store.append(make_new_event("S1"))
        clock.advance(days=2)
        data = client.get("/api/v1/stats/daily", params={"target_date": "2026-02-20"}).json()
        assert data["students_in"] == 1
        assert data["date"] == "2026-02-20"


class TestLiveStream:
    def test_initial_snapshot_then_update(self, client, ledger):
        with client.websocket_connect("/api/v1/access/today/stream") as ws:
            first = ws.receive_json()
            assert first == {"events": [], "stats": {"total_entries": 0, "students_in": 0,
                                                     "students_out": 0, "teachers_in": 0,
                                                     "teachers_out": 0}}

            client.post("/api/v1/access/entries", json=entry_body())
            second = ws.receive_json()
            assert second["stats"]["students_in"] == 1
            assert second["events"][0]["person_key"] == "S1"

        assert ledger.store.subscription_count == 0

    def test_lagging_client_keeps_newest_snapshots(self):
        queue = asyncio.Queue(maxsize=2)
        for n in range(3):
            offer_latest(queue, {"n": n})
        assert [queue.get_nowait()["n"] for _ in range(2)] == [1, 2]


class TestHealth:
    def test_health(self, client):
        data = client.get("/api/v1/health").json()
        assert data["database"] == "ok"
        assert data["read_error_policy"] == "degrade"
