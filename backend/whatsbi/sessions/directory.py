"""
Authorization Directory - which phone numbers may use which datasets.

Read-only from the conversation's point of view; ``save_authorized_number``
exists for provisioning and tests.
"""

import logging
from typing import List, Optional

from ..models import AuthorizedNumber, AvailableDataset
from ..storage import JSONDocumentStore, StorageInterface

logger = logging.getLogger(__name__)


class AuthorizationDirectory(JSONDocumentStore):
    """One document per phone under authorized_numbers/{phone}.json."""

    def __init__(self, storage: StorageInterface):
        super().__init__(storage, "authorized_numbers")

    async def get_authorized_number(self, phone: str) -> Optional[AuthorizedNumber]:
        """The active authorization for ``phone``, or None."""
        data = await self.read_document(phone)
        if data is None:
            return None
        number = AuthorizedNumber(**data)
        return number if number.is_active else None

    async def list_available_datasets(self, phone: str) -> List[AvailableDataset]:
        """Datasets ``phone`` may query, numbered 1..N in configured order."""
        number = await self.get_authorized_number(phone)
        if number is None:
            return []

        return [
            AvailableDataset(
                authorized_number_id=number.id,
                phone_number=number.phone_number,
                user_name=number.name,
                company_group_id=number.company_group_id,
                connection_id=grant.connection_id,
                connection_name=grant.connection_name,
                dataset_id=grant.dataset_id,
                dataset_name=grant.dataset_name,
                context_id=grant.context_id,
                context_name=grant.context_name,
                option_number=index,
            )
            for index, grant in enumerate(number.datasets, start=1)
        ]

    async def save_authorized_number(self, number: AuthorizedNumber) -> bool:
        return await self.write_document(number.phone_number, number.model_dump())
