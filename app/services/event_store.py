# app/services/event_store.py
"""
Event Store Gateway — the only module that touches the access_events table.

Write path: append() validates, stamps occurred_at from the clock, commits in
one transaction and then pushes fresh snapshots to every live subscription
whose window contains the new event.

Read path: query_window(), query_by_person() and subscription snapshots.
All reads order by occurred_at DESC, then id DESC, so events sharing a
timestamp come back latest-inserted first and the order is stable.

Read failures follow READ_ERROR_POLICY:
  degrade   — log and return []
  propagate — raise StoreError
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import SessionLocal
from app.errors import StoreError, ValidationError
from app.models.access_event import AccessEvent
from app.schemas.access_event import AccessEventOut
from app.utils.logger import get_logger

logger = get_logger(__name__)

APPENDABLE_ROLES = {"student", "teacher"}
DIRECTIONS = {"in", "out"}
READ_ERROR_POLICIES = {"degrade", "propagate"}

OnChange = Callable[[List[AccessEventOut]], None]


@dataclass
class NewAccessEvent:
    person_key: str
    name: str
    role: str                 # student | teacher
    direction: str            # in | out
    recorded_by_id: Optional[str] = None
    recorded_by_name: Optional[str] = None
    notes: Optional[str] = ""


def _validate_new_event(new: NewAccessEvent):
    if not new.person_key or not new.person_key.strip():
        raise ValidationError("person_key is required", field="person_key")
    if not new.name or not new.name.strip():
        raise ValidationError("name is required", field="name")
    if new.role not in APPENDABLE_ROLES:
        raise ValidationError(f"role must be one of {sorted(APPENDABLE_ROLES)}, got {new.role!r}", field="role")
    if new.direction not in DIRECTIONS:
        raise ValidationError(f"direction must be 'in' or 'out', got {new.direction!r}", field="direction")


class Subscription:
    """
    Live handle on a [start, end) window. Every delivery is the full window
    snapshot. Once unsubscribe() returns, on_change is never called again:
    delivery and cancellation take the same lock, and the lock is re-entrant
    so a callback may cancel its own subscription.
    """

    def __init__(self, start: datetime, end: datetime, on_change: OnChange,
                 on_cancel: Callable[["Subscription"], None]):
        self.start = start
        self.end = end
        self._on_change = on_change
        self._on_cancel = on_cancel
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def covers(self, ts: datetime) -> bool:
        return self.start <= ts < self.end

    def deliver(self, load: Callable[[], List[AccessEventOut]]) -> bool:
        """Read a snapshot with `load` and hand it to on_change, both under the lock.

        Reading inside the lock means the last delivery always comes from the
        last read, so a slow reader cannot overwrite a newer snapshot.
        """
        with self._lock:
            if not self._active:
                return False
            self._on_change(load())
            return True

    def unsubscribe(self):
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._on_cancel(self)

    __call__ = unsubscribe


class EventStoreGateway:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 clock: Callable[[], datetime] = datetime.now,
                 on_read_error: Optional[str] = None):
        self._session_factory = session_factory
        self._clock = clock
        self.on_read_error = on_read_error or settings.READ_ERROR_POLICY
        if self.on_read_error not in READ_ERROR_POLICIES:
            raise ValueError(f"on_read_error must be one of {sorted(READ_ERROR_POLICIES)}, got {self.on_read_error!r}")
        self._subscriptions: List[Subscription] = []
        self._subs_lock = threading.Lock()

    # ── Write path ───────────────────────────────────────────────────────────

    def append(self, new: NewAccessEvent) -> AccessEventOut:
        """Durably record one event. Either the event exists afterwards or StoreError is raised."""
        _validate_new_event(new)

        db = self._session_factory()
        try:
            row = AccessEvent(
                person_key=new.person_key.strip(),
                name=new.name.strip(),
                role=new.role,
                direction=new.direction,
                occurred_at=self._clock(),
                recorded_by_id=new.recorded_by_id,
                recorded_by_name=new.recorded_by_name,
                notes=(new.notes or "").strip(),
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            event = AccessEventOut.model_validate(row)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Ledger] append failed for key={new.person_key}: {e}", exc_info=True)
            raise StoreError(f"Could not record access event: {e}") from e
        finally:
            db.close()

        logger.info(f"[Ledger] #{event.id} {event.role} {event.person_key} ({event.name}) "
                    f"→ {event.direction.upper()} by {event.recorded_by_name or 'n/a'}")
        self._notify(event.occurred_at)
        return event

    # ── Read path ────────────────────────────────────────────────────────────

    def query_window(self, start: datetime, end: datetime, limit: Optional[int] = None) -> List[AccessEventOut]:
        """Events with start <= occurred_at < end, newest first."""
        if start >= end:
            return []

        def build(db: Session):
            q = db.query(AccessEvent).filter(
                AccessEvent.occurred_at >= start,
                AccessEvent.occurred_at < end,
            ).order_by(AccessEvent.occurred_at.desc(), AccessEvent.id.desc())
            return q.limit(limit) if limit else q

        return self._read(f"query_window[{start:%Y-%m-%d %H:%M}, {end:%Y-%m-%d %H:%M})", build)

    def query_by_person(self, person_key: str, limit: Optional[int] = None) -> List[AccessEventOut]:
        """Every event recorded under person_key, newest first. Role is not considered."""

        def build(db: Session):
            q = db.query(AccessEvent).filter(
                AccessEvent.person_key == person_key,
            ).order_by(AccessEvent.occurred_at.desc(), AccessEvent.id.desc())
            return q.limit(limit) if limit else q

        return self._read(f"query_by_person[{person_key}]", build)

    def _read(self, label: str, build, policy: Optional[str] = None) -> List[AccessEventOut]:
        policy = policy or self.on_read_error
        db = self._session_factory()
        try:
            return [AccessEventOut.model_validate(row) for row in build(db).all()]
        except SQLAlchemyError as e:
            if policy == "propagate":
                raise StoreError(f"{label} failed: {e}") from e
            logger.error(f"[Ledger] {label} failed — returning empty result: {e}", exc_info=True)
            return []
        finally:
            db.close()

    # ── Subscriptions ────────────────────────────────────────────────────────

    def subscribe_window(self, start: datetime, end: datetime, on_change: OnChange) -> Subscription:
        """
        Deliver the [start, end) snapshot now and again after every append inside
        the window. Under the propagate policy a failing initial read raises
        StoreError; later failures always deliver [] and keep the subscription.
        """
        sub = Subscription(start, end, on_change, self._detach)
        # Register before the first read so an append racing this call is not lost
        with self._subs_lock:
            self._subscriptions.append(sub)
        logger.debug(f"[Ledger] subscription opened for [{start}, {end}) — {len(self._subscriptions)} active")
        try:
            sub.deliver(lambda: self._read("subscribe_window", lambda db: self._window_query(db, sub)))
        except StoreError:
            sub.unsubscribe()
            raise
        return sub

    def refresh_subscriptions(self):
        """Re-deliver every active window, e.g. after writes from another process."""
        for sub in self._active_subscriptions():
            self._push(sub)

    @property
    def subscription_count(self) -> int:
        with self._subs_lock:
            return len(self._subscriptions)

    def _window_query(self, db: Session, sub: Subscription):
        return db.query(AccessEvent).filter(
            AccessEvent.occurred_at >= sub.start,
            AccessEvent.occurred_at < sub.end,
        ).order_by(AccessEvent.occurred_at.desc(), AccessEvent.id.desc())

    def _active_subscriptions(self) -> List[Subscription]:
        with self._subs_lock:
            return list(self._subscriptions)

    def _notify(self, ts: datetime):
        for sub in self._active_subscriptions():
            if sub.covers(ts):
                self._push(sub)

    def _push(self, sub: Subscription):
        try:
            sub.deliver(lambda: self._read("subscription snapshot",
                                           lambda db: self._window_query(db, sub), policy="degrade"))
        except Exception as e:
            # The write already succeeded; a broken listener must not fail it
            logger.error(f"[Ledger] subscriber callback raised: {e}", exc_info=True)

    def _detach(self, sub: Subscription):
        with self._subs_lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)
        logger.debug("[Ledger] subscription closed")
