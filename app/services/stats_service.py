# app/services/stats_service.py
"""
Daily Aggregator — turns one day's events into DailyStats.

  total_entries  = every event in the window, guards included
  per-role counts = one bucket per person_key, by that person's last event

Keyed on person_key alone: an enrollment number equal to an employee id is
counted as one person (whichever event is latest decides its bucket).
"""

from datetime import datetime, timedelta
from typing import Iterable, Tuple

from app.schemas.access_event import DailyStats

_BUCKETS = {
    ("student", "in"): "students_in",
    ("student", "out"): "students_out",
    ("teacher", "in"): "teachers_in",
    ("teacher", "out"): "teachers_out",
}


def day_window(now: datetime) -> Tuple[datetime, datetime]:
    """[start of day, start of next day) around `now`, in local wall-clock time."""
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def compute_daily_stats(events: Iterable) -> DailyStats:
    total = 0
    latest = {}
    for event in events:
        total += 1
        seen = latest.get(event.person_key)
        # strict > : on equal timestamps the first one in input order stays
        if seen is None or event.occurred_at > seen.occurred_at:
            latest[event.person_key] = event

    counts = dict.fromkeys(_BUCKETS.values(), 0)
    for event in latest.values():
        bucket = _BUCKETS.get((event.role, event.direction))
        if bucket:                  # guards have no bucket
            counts[bucket] += 1

    return DailyStats(total_entries=total, **counts)
