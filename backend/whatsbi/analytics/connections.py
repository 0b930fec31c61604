"""
Connection Store - credentials for analytical backend connections.
"""

import logging
from typing import Optional

from ..models import BackendConnection
from ..storage import JSONDocumentStore, StorageInterface

logger = logging.getLogger(__name__)


class ConnectionStore(JSONDocumentStore):
    """One document per connection under connections/{id}.json."""

    def __init__(self, storage: StorageInterface):
        super().__init__(storage, "connections")

    async def get_connection(self, connection_id: str) -> Optional[BackendConnection]:
        data = await self.read_document(connection_id)
        if data is None:
            logger.warning(f"Connection not found: {connection_id}")
            return None
        return BackendConnection(**data)

    async def save_connection(self, connection: BackendConnection) -> bool:
        return await self.write_document(connection.id, connection.model_dump())
