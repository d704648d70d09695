# app/schemas/access_event.py
from pydantic import BaseModel, Field, computed_field
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

Role = Literal["student", "teacher", "guard"]
EntryRole = Literal["student", "teacher"]      # roles a guard may record
Direction = Literal["in", "out"]


class PersonStatus(str, Enum):
    IN = "in"
    OUT = "out"
    UNKNOWN = "unknown"     # no event on record for the key


# ── Person identity ──────────────────────────────────────────────────────────
# Students are keyed by enrollment number, staff by employee id. Both end up
# in the flat person_key column; this union is the typed view of that pair.

class StudentIdentity(BaseModel):
    role: Literal["student"] = "student"
    enrollment_number: str


class StaffIdentity(BaseModel):
    role: Literal["teacher", "guard"]
    employee_id: str


PersonIdentity = Annotated[Union[StudentIdentity, StaffIdentity], Field(discriminator="role")]


def identity_for(role: str, person_key: str) -> Union[StudentIdentity, StaffIdentity]:
    if role == "student":
        return StudentIdentity(enrollment_number=person_key)
    return StaffIdentity(role=role, employee_id=person_key)


# ── Events ───────────────────────────────────────────────────────────────────

class AccessEventOut(BaseModel):
    id: int
    person_key: str
    name: str
    role: Role
    direction: Direction
    occurred_at: datetime
    recorded_by_id: Optional[str]
    recorded_by_name: Optional[str]
    notes: Optional[str] = ""

    class Config:
        from_attributes = True
        frozen = True

    @computed_field
    @property
    def identity(self) -> PersonIdentity:
        return identity_for(self.role, self.person_key)


class AccessEntryInput(BaseModel):
    """Manual entry form submitted by a guard."""
    name: str
    role: EntryRole
    direction: Direction
    id_number: str
    notes: Optional[str] = None


class Operator(BaseModel):
    """Guard who records an entry."""
    id: str
    name: str


class RecordEntryRequest(BaseModel):
    entry: AccessEntryInput
    operator: Operator
    confirm: bool = False     # set after the guard acknowledges a warning


class EntryWarningOut(BaseModel):
    kind: str                 # duplicate_in | not_checked_in
    person_key: str
    current_status: PersonStatus
    message: str


class PersonStatusOut(BaseModel):
    person_key: str
    role: Optional[EntryRole] = None
    status: PersonStatus


# ── Stats ────────────────────────────────────────────────────────────────────

class DailyStats(BaseModel):
    total_entries: int = 0
    students_in: int = 0
    students_out: int = 0
    teachers_in: int = 0
    teachers_out: int = 0

    class Config:
        frozen = True


class TodayStatsOut(DailyStats):
    date: str
