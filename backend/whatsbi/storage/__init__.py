"""Storage module - provides interface and implementations for data persistence."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .documents import JSONDocumentStore

__all__ = ['StorageInterface', 'LocalStorage', 'JSONDocumentStore']
