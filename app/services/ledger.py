# app/services/ledger.py
"""
AccessLedger — the one object the presentation layer talks to.
Wires gateway, resolver, aggregator and live view together.
"""

import threading
from datetime import date, datetime, time
from typing import Callable, List, Optional

from app.schemas.access_event import (
    AccessEntryInput, AccessEventOut, DailyStats, Operator, PersonStatus,
)
from app.services.event_store import EventStoreGateway, Subscription
from app.services.live_view import LiveViewCoordinator, OnUpdate, RecordOutcome
from app.services.stats_service import compute_daily_stats, day_window
from app.services.status_service import StatusResolver


class AccessLedger:
    def __init__(self, store: Optional[EventStoreGateway] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store or EventStoreGateway(clock=clock)
        self.clock = clock
        self.resolver = StatusResolver(self.store)
        self.live_view = LiveViewCoordinator(self.store, self.resolver, clock=clock)

    def get_today_entries(self, limit: Optional[int] = None) -> List[AccessEventOut]:
        start, end = day_window(self.clock())
        return self.store.query_window(start, end, limit=limit)

    def get_today_stats(self) -> DailyStats:
        return compute_daily_stats(self.get_today_entries())

    def get_day_stats(self, day: date) -> DailyStats:
        start, end = day_window(datetime.combine(day, time.min))
        return compute_daily_stats(self.store.query_window(start, end))

    def subscribe_today(self, on_update: OnUpdate) -> Subscription:
        return self.live_view.start(on_update)

    def get_person_status(self, person_key: str, role: Optional[str] = None) -> PersonStatus:
        # role is informational only: keys share one namespace across roles
        return self.resolver.resolve_status(person_key)

    def record_entry(self, entry: AccessEntryInput, operator: Operator,
                     confirmed: bool = False) -> RecordOutcome:
        return self.live_view.record_entry(entry, operator, confirmed=confirmed)


_ledger: Optional[AccessLedger] = None
_ledger_lock = threading.Lock()


def get_ledger() -> AccessLedger:
    """FastAPI dependency — one process-wide ledger so live subscriptions see every append."""
    global _ledger
    if _ledger is None:
        with _ledger_lock:
            if _ledger is None:
                _ledger = AccessLedger()
    return _ledger
