"""Object store protocol and the record type shared by adapters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional, Protocol


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Metadata describing one object in the bucket.

    Attributes:
        key: Full object key, using `/` as the path separator.
        size: Size of the object in bytes.
        last_modified: Timestamp reported by the store.
        etag: Opaque version token for the current object contents.
    """

    key: str
    size: int
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


class ObjectStore(Protocol):
    """Primitive operations Borgy needs from a bucket of named binary objects."""

    def list_objects(self, prefix: str = "", recursive: bool = True) -> Iterator[StoredObject]:
        """Lazily enumerate objects under ``prefix``."""
        ...

    def get_object(self, key: str) -> bytes:
        """Return the full contents of ``key``."""
        ...

    def put_object(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> StoredObject:
        """Create or replace ``key`` with ``data``."""
        ...

    def copy_object(self, source: str, destination: str) -> None:
        """Server-side copy of ``source`` to ``destination``."""
        ...

    def remove_object(self, key: str) -> None:
        """Delete ``key``."""
        ...

    def stat_object(self, key: str) -> Optional[StoredObject]:
        """Return metadata for ``key`` or None when it does not exist."""
        ...


__all__ = ["ObjectStore", "StoredObject"]
