# app/models/access_event.py
"""
Access event log table.
One row per check-in / check-out of a student, teacher or guard.
Append-only: rows are never updated or deleted by the ledger.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from app.database import Base


class AccessEvent(Base):
    __tablename__ = "access_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    person_key = Column(String(100), nullable=False, index=True)  # enrollment no. or employee id
    name = Column(String(200), nullable=False)                     # display name at time of recording
    role = Column(String(20), nullable=False)                      # student | teacher | guard
    direction = Column(String(10), nullable=False)                 # in | out
    occurred_at = Column(DateTime, nullable=False, index=True)
    recorded_by_id = Column(String(100))
    recorded_by_name = Column(String(200))
    notes = Column(Text, default="")

    __table_args__ = (
        Index("ix_access_events_person_time", "person_key", "occurred_at"),
    )

    def __repr__(self):
        return (f"<AccessEvent {self.id} key={self.person_key} role={self.role} "
                f"dir={self.direction} at={self.occurred_at}>")
