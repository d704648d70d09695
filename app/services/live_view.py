# app/services/live_view.py
"""
Live View Coordinator — today's events + stats for the guard screen, and the
manual entry pipeline.

Live view:
  start(on_update) subscribes to today's window and calls
  on_update(events, stats) with a full snapshot after every change. "Today"
  is fixed when start() is called; a view left open past midnight keeps
  showing the previous day until it is restarted.

Manual entry:
  record_entry() checks the person's current status first.
    IN  while already IN             → DuplicateInWarning
    OUT while OUT or never seen      → NotCheckedInWarning
  A warning appends nothing; the guard has to resubmit with confirmed=True.
  ManualEntrySubmission wraps the same flow as an explicit state machine:
    IDLE → VALIDATING → (WARNING →) SUBMITTING → RECORDED | FAILED
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, ClassVar, List, Optional, Tuple

from app.errors import LedgerError, RecordError, StoreError, ValidationError
from app.schemas.access_event import (
    AccessEntryInput, AccessEventOut, DailyStats, Operator, PersonStatus,
)
from app.services.event_store import EventStoreGateway, NewAccessEvent, Subscription
from app.services.stats_service import compute_daily_stats, day_window
from app.services.status_service import StatusResolver
from app.utils.logger import get_logger

logger = get_logger(__name__)

OnUpdate = Callable[[List[AccessEventOut], DailyStats], None]


# ── Warnings ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EntryWarning:
    kind: ClassVar[str] = "warning"
    person_key: str
    current_status: PersonStatus

    @property
    def message(self) -> str:
        return f"{self.person_key} is currently {self.current_status.value}"


@dataclass(frozen=True)
class DuplicateInWarning(EntryWarning):
    kind: ClassVar[str] = "duplicate_in"

    @property
    def message(self) -> str:
        return f"{self.person_key} is already checked IN. Record another IN anyway?"


@dataclass(frozen=True)
class NotCheckedInWarning(EntryWarning):
    kind: ClassVar[str] = "not_checked_in"

    @property
    def message(self) -> str:
        if self.current_status == PersonStatus.UNKNOWN:
            return f"No entry on record for {self.person_key}. Record OUT anyway?"
        return f"{self.person_key} is not checked IN. Record OUT anyway?"


@dataclass
class RecordOutcome:
    event: Optional[AccessEventOut] = None
    warning: Optional[EntryWarning] = None

    @property
    def recorded(self) -> bool:
        return self.event is not None


def validate_entry(entry: AccessEntryInput, operator: Operator) -> NewAccessEvent:
    """Trim and check the form. Raises ValidationError before any store call."""
    name = (entry.name or "").strip()
    id_number = (entry.id_number or "").strip()
    if not name:
        raise ValidationError("Name is required", field="name")
    if not id_number:
        raise ValidationError("ID number is required", field="id_number")

    return NewAccessEvent(
        person_key=id_number,
        name=name,
        role=entry.role,
        direction=entry.direction,
        recorded_by_id=operator.id,
        recorded_by_name=operator.name,
        notes=(entry.notes or "").strip(),
    )


class LiveViewCoordinator:
    def __init__(self, store: EventStoreGateway, resolver: Optional[StatusResolver] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.resolver = resolver or StatusResolver(store)
        self.clock = clock

    # ── Live projection ──────────────────────────────────────────────────────

    def start(self, on_update: OnUpdate) -> Subscription:
        start, end = day_window(self.clock())
        logger.info(f"[LiveView] watching {start:%Y-%m-%d} ({start} → {end})")

        def _on_change(events: List[AccessEventOut]):
            on_update(events, compute_daily_stats(events))

        return self.store.subscribe_window(start, end, _on_change)

    # ── Manual entry ─────────────────────────────────────────────────────────

    def check_entry(self, person_key: str, direction: str) -> Optional[EntryWarning]:
        status = self.resolver.resolve_status(person_key)
        if direction == "in" and status == PersonStatus.IN:
            return DuplicateInWarning(person_key, status)
        if direction == "out" and status in (PersonStatus.OUT, PersonStatus.UNKNOWN):
            return NotCheckedInWarning(person_key, status)
        return None

    def prepare_entry(self, entry: AccessEntryInput, operator: Operator) -> Tuple[NewAccessEvent, Optional[EntryWarning]]:
        try:
            new = validate_entry(entry, operator)
            warning = self.check_entry(new.person_key, new.direction)
        except (ValidationError, StoreError) as e:
            raise RecordError(e) from e

        if warning:
            logger.warning(f"[LiveView] {warning.kind}: {warning.message} (operator={operator.name})")
        return new, warning

    def commit_entry(self, new: NewAccessEvent) -> AccessEventOut:
        # No refresh needed afterwards: the append notifies live subscriptions
        try:
            return self.store.append(new)
        except (ValidationError, StoreError) as e:
            raise RecordError(e) from e

    def record_entry(self, entry: AccessEntryInput, operator: Operator, confirmed: bool = False) -> RecordOutcome:
        new, warning = self.prepare_entry(entry, operator)
        if warning and not confirmed:
            return RecordOutcome(warning=warning)
        return RecordOutcome(event=self.commit_entry(new))


# ── Submission state machine ─────────────────────────────────────────────────

class SubmissionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    WARNING = "warning"
    SUBMITTING = "submitting"
    RECORDED = "recorded"
    FAILED = "failed"


class SubmissionStateError(LedgerError):
    """An action was taken that the current submission state does not allow."""


class ManualEntrySubmission:
    """One guard's manual entry form. Assumes a single in-flight submission per instance."""

    def __init__(self, coordinator: LiveViewCoordinator, operator: Operator):
        self.coordinator = coordinator
        self.operator = operator
        self.state = SubmissionState.IDLE
        self.warning: Optional[EntryWarning] = None
        self.event: Optional[AccessEventOut] = None
        self.error: Optional[RecordError] = None
        self._pending: Optional[NewAccessEvent] = None

    def submit(self, entry: AccessEntryInput) -> SubmissionState:
        if self.state not in (SubmissionState.IDLE, SubmissionState.RECORDED, SubmissionState.FAILED):
            raise SubmissionStateError(f"cannot submit while {self.state.value}")
        self._clear()
        self._move(SubmissionState.VALIDATING)

        try:
            new, warning = self.coordinator.prepare_entry(entry, self.operator)
        except RecordError as e:
            self.error = e
            return self._move(SubmissionState.FAILED)

        if warning:
            self.warning = warning
            self._pending = new
            return self._move(SubmissionState.WARNING)
        return self._commit(new)

    def confirm(self) -> SubmissionState:
        if self.state != SubmissionState.WARNING:
            raise SubmissionStateError(f"nothing to confirm while {self.state.value}")
        return self._commit(self._pending)

    def cancel(self) -> SubmissionState:
        if self.state != SubmissionState.WARNING:
            raise SubmissionStateError(f"nothing to cancel while {self.state.value}")
        self._clear()
        return self._move(SubmissionState.IDLE)

    def _commit(self, new: NewAccessEvent) -> SubmissionState:
        self._move(SubmissionState.SUBMITTING)
        try:
            self.event = self.coordinator.commit_entry(new)
        except RecordError as e:
            self.error = e
            return self._move(SubmissionState.FAILED)
        finally:
            self._pending = None
        return self._move(SubmissionState.RECORDED)

    def _clear(self):
        self.warning = None
        self.event = None
        self.error = None
        self._pending = None

    def _move(self, state: SubmissionState) -> SubmissionState:
        logger.debug(f"[Entry] {self.state.value} → {state.value}")
        self.state = state
        return state
