"""Models module."""

from .connection import BackendConnection
from .dataset import AuthorizedNumber, AvailableDataset, DatasetGrant
from .learning import LearnedQuery
from .session import Session, SessionResult

__all__ = [
    'BackendConnection',
    'AuthorizedNumber', 'AvailableDataset', 'DatasetGrant',
    'LearnedQuery',
    'Session', 'SessionResult',
]
