"""
JSON document helpers shared by the persistent stores.
"""

import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Optional

from .interface import StorageInterface

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JSONDocumentStore:
    """
    Base class for stores that keep one JSON document per key.

    Subclasses use ``key_lock(key)`` around read-modify-write sequences so two
    coroutines touching the same document never interleave.
    """

    def __init__(self, storage: StorageInterface, directory: str):
        """
        Args:
            storage: StorageInterface implementation (typically LocalStorage)
            directory: Directory under the storage root holding the documents
        """
        self.storage = storage
        self.directory = directory
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def document_path(self, key: str) -> str:
        return f"{self.directory}/{key}.json"

    def key_lock(self, key: str) -> asyncio.Lock:
        return self._locks[key]

    async def read_document(self, key: str) -> Optional[Any]:
        """Load and decode a document; a corrupt document reads as missing."""
        content = await self.storage.load(self.document_path(key))
        if content is None:
            return None
        try:
            return json.loads(content.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable document {self.document_path(key)}: {e}")
            return None

    async def write_document(self, key: str, data: Any) -> bool:
        content = json.dumps(data, indent=2, ensure_ascii=False, default=_json_default)
        return await self.storage.save(self.document_path(key), content)

    async def delete_document(self, key: str) -> bool:
        return await self.storage.delete(self.document_path(key))
