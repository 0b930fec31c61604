"""
Conversation Log - incoming and outgoing messages per phone number.

Stored as JSON lines under messages/{phone}.jsonl, appended one entry per
message. Recent entries double as conversation history for the model.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..llm.base import LLMMessage
from ..storage import StorageInterface

logger = logging.getLogger(__name__)

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"


class ConversationLog:
    """Append-only message log backed by StorageInterface.append."""

    def __init__(self, storage: StorageInterface, directory: str = "messages"):
        self.storage = storage
        self.directory = directory

    def _path(self, phone: str) -> str:
        return f"{self.directory}/{phone}.jsonl"

    async def record(
        self,
        phone: str,
        direction: str,
        content: str,
        dataset_id: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> bool:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "direction": direction,
            "content": content,
            "dataset_id": dataset_id,
            "sender_name": sender_name,
        }
        return await self.storage.append(self._path(phone), json.dumps(entry, ensure_ascii=False) + "\n")

    async def get_entries(self, phone: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        content = await self.storage.load(self._path(phone))
        if not content:
            return []

        entries = []
        for line in content.decode("utf-8").splitlines():
            if not line.strip():
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning(f"Skipping malformed log line for {self._path(phone)}")
        return entries[-limit:] if limit else entries

    async def get_history(self, phone: str, limit: int = 10) -> List[LLMMessage]:
        """
        Recent exchanges as alternating model messages.

        The history starts with a user turn and ends with an assistant turn;
        consecutive entries in the same direction are joined.
        """
        messages: List[LLMMessage] = []
        for entry in await self.get_entries(phone, limit):
            role = "user" if entry.get("direction") == DIRECTION_INCOMING else "assistant"
            text = entry.get("content") or ""
            if not text:
                continue
            if messages and messages[-1].role == role:
                messages[-1] = LLMMessage.text(role, f"{messages[-1].content}\n{text}")
            else:
                messages.append(LLMMessage.text(role, text))

        while messages and messages[0].role != "user":
            messages.pop(0)
        # The trailing user turn is the message being answered right now
        while messages and messages[-1].role != "assistant":
            messages.pop()
        return messages
