"""Object store adapters."""

from .base import ObjectStore, StoredObject
from .errors import EnumerationError, ObjectNotFoundError, StoreError, StoreMutationError
from .memory import MemoryObjectStore

__all__ = [
    "ObjectStore",
    "StoredObject",
    "MemoryObjectStore",
    "StoreError",
    "EnumerationError",
    "ObjectNotFoundError",
    "StoreMutationError",
]
