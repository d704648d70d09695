# app/services/status_service.py
"""
Status Resolver — is a person currently in, out, or unknown?

Looks only at the most recent event for the key, across all days. No
caching: every call reads the store. A failed read follows the gateway's
READ_ERROR_POLICY, so under "degrade" it reports UNKNOWN.
"""

from app.schemas.access_event import PersonStatus
from app.services.event_store import EventStoreGateway
from app.utils.logger import get_logger

logger = get_logger(__name__)


class StatusResolver:
    def __init__(self, store: EventStoreGateway):
        self.store = store

    def resolve_status(self, person_key: str) -> PersonStatus:
        history = self.store.query_by_person(person_key, limit=1)
        if not history:
            return PersonStatus.UNKNOWN

        latest = history[0]
        logger.debug(f"[Status] {person_key}: last {latest.direction} at {latest.occurred_at}")
        return PersonStatus(latest.direction)
