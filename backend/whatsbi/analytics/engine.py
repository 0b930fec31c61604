"""
Query Execution Engine - runs a query against the analytical backend.

The query language is opaque here: whatever text the model produced is
posted to the dataset's executeQueries endpoint as-is.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..models import BackendConnection
from .connections import ConnectionStore
from .identity import TokenRequestError
from .token_cache import TokenCache

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 300


@dataclass
class QueryExecutionResult:
    success: bool
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    retried: bool = False
    execution_time_ms: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)


def extract_rows(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Rows of the first table of the first query; missing pieces mean no rows."""
    results = payload.get("results") or []
    if not results:
        return []
    tables = results[0].get("tables") or []
    if not tables:
        return []
    return tables[0].get("rows") or []


class QueryExecutionEngine:
    """
    Executes queries with a per-attempt deadline and a single re-authentication.

    A 401 invalidates the cached token and the call is repeated once with a
    fresh one; whatever the second attempt returns is final. Any broader
    retry policy belongs to the caller.
    """

    def __init__(
        self,
        connections: ConnectionStore,
        token_cache: TokenCache,
        api_url: str = "https://api.powerbi.com/v1.0/myorg",
        timeout: float = 20.0,
    ):
        self.connections = connections
        self.token_cache = token_cache
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def query_url(self, connection: BackendConnection, dataset_id: str) -> str:
        return f"{self.api_url}/groups/{connection.workspace_id}/datasets/{dataset_id}/executeQueries"

    async def _post_query(self, connection: BackendConnection, dataset_id: str,
                          query: str, token: str) -> httpx.Response:
        payload = {
            "queries": [{"query": query}],
            "serializerSettings": {"includeNulls": True},
        }
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await asyncio.wait_for(
                client.post(self.query_url(connection, dataset_id), json=payload, headers=headers),
                self.timeout,
            )

    async def execute(self, connection_id: str, dataset_id: str, query: str) -> QueryExecutionResult:
        """
        Execute ``query`` against ``dataset_id`` through ``connection_id``.

        Never raises for remote failures; they come back as an unsuccessful
        QueryExecutionResult. Elapsed time is recorded on every outcome.
        """
        start_time = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start_time) * 1000)

        connection = await self.connections.get_connection(connection_id)
        if connection is None:
            return QueryExecutionResult(
                success=False, error="Conexão não encontrada", execution_time_ms=elapsed_ms()
            )

        retried = False
        try:
            token = await self.token_cache.get_token(connection)
            response = await self._post_query(connection, dataset_id, query, token)

            if response.status_code == 401:
                logger.warning(
                    "Analytics token rejected, retrying with a fresh token",
                    extra={"extra_fields": {"connection_id": connection_id, "dataset_id": dataset_id}}
                )
                self.token_cache.invalidate(connection.id, stale_token=token)
                token = await self.token_cache.get_token(connection)
                retried = True
                response = await self._post_query(connection, dataset_id, query, token)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(
                f"Query timed out after {self.timeout:.0f}s",
                extra={"extra_fields": {"dataset_id": dataset_id, "duration_ms": elapsed_ms()}}
            )
            return QueryExecutionResult(
                success=False,
                error=f"Timeout: consulta demorou mais de {self.timeout:.0f} segundos",
                retried=retried,
                execution_time_ms=elapsed_ms(),
            )
        except (httpx.HTTPError, TokenRequestError) as e:
            logger.error(
                f"Query execution failed: {e}",
                extra={"extra_fields": {"dataset_id": dataset_id, "error": str(e)}}
            )
            return QueryExecutionResult(
                success=False, error=str(e)[:MAX_ERROR_LENGTH],
                retried=retried, execution_time_ms=elapsed_ms(),
            )

        if response.status_code >= 400:
            error_text = response.text[:MAX_ERROR_LENGTH]
            logger.warning(
                f"Query rejected by backend: {response.status_code}",
                extra={"extra_fields": {
                    "dataset_id": dataset_id,
                    "status_code": response.status_code,
                    "retried": retried,
                }}
            )
            return QueryExecutionResult(
                success=False, error=f"Erro na consulta: {error_text}",
                retried=retried, execution_time_ms=elapsed_ms(),
            )

        try:
            rows = extract_rows(response.json())
        except ValueError as e:
            return QueryExecutionResult(
                success=False, error=f"Resposta inválida: {e}"[:MAX_ERROR_LENGTH],
                retried=retried, execution_time_ms=elapsed_ms(),
            )

        result = QueryExecutionResult(
            success=True, rows=rows, retried=retried, execution_time_ms=elapsed_ms()
        )
        logger.info(
            "Query executed",
            extra={"extra_fields": {
                "dataset_id": dataset_id,
                "rows": result.row_count,
                "retried": retried,
                "duration_ms": result.execution_time_ms,
            }}
        )
        return result
