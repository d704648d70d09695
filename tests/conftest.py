# tests/conftest.py
"""Shared fixtures: in-memory SQLite store, controllable clock, API client."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from datetime import datetime, timedelta
from sqlalchemy.orm import sessionmaker
from app.database import build_engine, create_tables
from app.services.event_store import EventStoreGateway, NewAccessEvent
from app.services.ledger import AccessLedger

TODAY_9AM = datetime(2026, 2, 20, 9, 0, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, **fields):
        self.now = self.now.replace(**fields)

    def advance(self, **delta):
        self.now += timedelta(**delta)


@pytest.fixture
def clock():
    return FakeClock(TODAY_9AM)


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    create_tables(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory, clock):
    return EventStoreGateway(session_factory, clock=clock, on_read_error="degrade")


@pytest.fixture
def ledger(store, clock):
    return AccessLedger(store=store, clock=clock)


@pytest.fixture
def client(ledger, session_factory):
    from fastapi.testclient import TestClient
    from app.main import app
    from app.database import get_db
    from app.services.ledger import get_ledger

    def _db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_db] = _db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_new_event(person_key="S1", role="student", direction="in", name=None):
    return NewAccessEvent(
        person_key=person_key,
        name=name or f"Person {person_key}",
        role=role,
        direction=direction,
        recorded_by_id="G1",
        recorded_by_name="Gate Guard",
    )
