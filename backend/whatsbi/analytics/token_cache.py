"""
Token Cache - bearer tokens per backend connection.

Shared by every query execution against the same connection. Refreshes are
serialised per connection id, so N concurrent misses trigger one fetch.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional

from ..models import BackendConnection

logger = logging.getLogger(__name__)

TokenFetcher = Callable[[BackendConnection], Awaitable[str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CachedToken:
    token: str
    expires_at: datetime


class TokenCache:
    """
    Maps connection id to (token, absolute expiry).

    A token is handed out only while more than ``refresh_margin`` remains
    before its expiry. Fetched tokens are kept for ``lifetime`` (50 minutes
    against the provider's 60) to absorb clock skew and in-flight latency.
    """

    def __init__(
        self,
        fetch_token: TokenFetcher,
        refresh_margin: timedelta = timedelta(minutes=5),
        lifetime: timedelta = timedelta(minutes=50),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._fetch_token = fetch_token
        self.refresh_margin = refresh_margin
        self.lifetime = lifetime
        self._clock = clock
        self._tokens: Dict[str, CachedToken] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _usable(self, entry: Optional[CachedToken]) -> bool:
        return entry is not None and entry.expires_at - self._clock() > self.refresh_margin

    def peek(self, connection_id: str) -> Optional[CachedToken]:
        return self._tokens.get(connection_id)

    async def get_token(self, connection: BackendConnection) -> str:
        entry = self._tokens.get(connection.id)
        if self._usable(entry):
            return entry.token

        async with self._locks[connection.id]:
            # Another coroutine may have refreshed while we waited
            entry = self._tokens.get(connection.id)
            if self._usable(entry):
                return entry.token

            token = await self._fetch_token(connection)
            self._tokens[connection.id] = CachedToken(token, self._clock() + self.lifetime)
            logger.debug(f"Token cached for connection {connection.id}")
            return token

    def invalidate(self, connection_id: str, stale_token: Optional[str] = None) -> None:
        """
        Drop the cached token for a connection.

        With ``stale_token`` the entry is dropped only if it still holds that
        token, so a token another coroutine just refreshed survives.
        """
        entry = self._tokens.get(connection_id)
        if entry is None:
            return
        if stale_token is not None and entry.token != stale_token:
            return
        del self._tokens[connection_id]
        logger.info(f"Token invalidated for connection {connection_id}")
