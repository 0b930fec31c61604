"""Analytics module - token-authenticated query execution against the data backend."""

from .connections import ConnectionStore
from .identity import ClientCredentialsTokenProvider, TokenRequestError
from .token_cache import CachedToken, TokenCache
from .engine import QueryExecutionEngine, QueryExecutionResult, extract_rows

__all__ = [
    'ConnectionStore',
    'ClientCredentialsTokenProvider',
    'TokenRequestError',
    'CachedToken',
    'TokenCache',
    'QueryExecutionEngine',
    'QueryExecutionResult',
    'extract_rows',
]
