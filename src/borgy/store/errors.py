"""Object store errors."""


class StoreError(Exception):
    """Base exception for object store operations."""


class EnumerationError(StoreError):
    """Raised when listing the bucket fails before the listing is drained."""


class ObjectNotFoundError(StoreError):
    """Raised when a requested object does not exist."""


class StoreMutationError(StoreError):
    """Raised when a put, copy, or delete cannot be completed."""
