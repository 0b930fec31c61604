"""
Session Store - one session document per phone number.

Writes are upserts keyed by phone under a per-phone lock, so two messages
from the same number can never leave two sessions behind. Expiry is
enforced here: an expired document reads exactly like a missing one.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..models import AvailableDataset, Session
from ..storage import JSONDocumentStore, StorageInterface

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(JSONDocumentStore):
    """Persists sessions under sessions/{phone}.json with a sliding TTL."""

    def __init__(
        self,
        storage: StorageInterface,
        ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(storage, "sessions")
        self.ttl = ttl
        self.clock = clock

    async def _read(self, phone: str) -> Optional[Session]:
        data = await self.read_document(phone)
        return Session(**data) if data else None

    async def get_active(self, phone: str) -> Optional[Session]:
        """The phone's session if it has not expired, else None."""
        session = await self._read(phone)
        if session is None or session.is_expired(self.clock()):
            return None
        return session

    async def upsert(self, phone: str, dataset: AvailableDataset) -> Session:
        """Create or replace the phone's session, bound to ``dataset``."""
        async with self.key_lock(phone):
            session = Session.for_dataset(phone, dataset, self.clock(), self.ttl)
            await self.write_document(phone, session.model_dump())

        logger.info(
            "Session selected",
            extra={"extra_fields": {"dataset_id": dataset.dataset_id, "dataset": session.dataset_name}}
        )
        return session

    async def touch(self, phone: str) -> Optional[Session]:
        """
        Push activity and expiry forward on an active session.

        Returns:
            The refreshed session, or None if it expired or vanished meanwhile
        """
        async with self.key_lock(phone):
            session = await self._read(phone)
            now = self.clock()
            if session is None or session.is_expired(now):
                return None
            session.last_activity_at = now
            session.expires_at = now + self.ttl
            await self.write_document(phone, session.model_dump())
            return session

    async def delete(self, phone: str) -> bool:
        async with self.key_lock(phone):
            return await self.delete_document(phone)
