"""
Session Models - binding of a phone number to one data context.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List
from pydantic import BaseModel, Field

from .dataset import AvailableDataset


class Session(BaseModel):
    """Active binding of a phone number to exactly one dataset."""
    phone_number: str
    authorized_number_id: Optional[str] = None
    connection_id: str
    dataset_id: str
    dataset_name: str
    context_id: Optional[str] = None
    selected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    @classmethod
    def for_dataset(cls, phone: str, dataset: AvailableDataset,
                    now: datetime, ttl: timedelta) -> "Session":
        """Build a fresh session for the chosen dataset."""
        return cls(
            phone_number=phone,
            authorized_number_id=dataset.authorized_number_id,
            connection_id=dataset.connection_id,
            dataset_id=dataset.dataset_id,
            dataset_name=dataset.display_name,
            context_id=dataset.context_id,
            selected_at=now,
            last_activity_at=now,
            expires_at=now + ttl,
        )


class SessionResult(BaseModel):
    """Outcome of resolving an inbound message to a data context."""
    has_session: bool
    session: Optional[Session] = None
    needs_selection: bool = False
    available_datasets: List[AvailableDataset] = Field(default_factory=list)
    menu_message: Optional[str] = None
