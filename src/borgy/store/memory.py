"""In-process object store backed by a dictionary."""

from __future__ import annotations

import hashlib
import threading
from datetime import datetime, timezone
from typing import Iterator, Optional

from .base import StoredObject
from .errors import ObjectNotFoundError


class MemoryObjectStore:
    """Dictionary-backed store implementing the ``ObjectStore`` protocol.

    Useful for tests and for trying out organization runs without a MinIO
    server. Listing returns keys in lexical order, matching S3 semantics.
    """

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self._lock = threading.Lock()
        self._objects: dict[str, tuple[bytes, StoredObject]] = {}
        for key, data in (objects or {}).items():
            self.put_object(key, data)

    def keys(self) -> list[str]:
        """Return every stored key in lexical order."""
        with self._lock:
            return sorted(self._objects)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._objects

    def list_objects(self, prefix: str = "", recursive: bool = True) -> Iterator[StoredObject]:
        with self._lock:
            snapshot = sorted(self._objects.items())
        for key, (_, meta) in snapshot:
            if not key.startswith(prefix):
                continue
            if not recursive and "/" in key[len(prefix) :]:
                continue
            yield meta

    def get_object(self, key: str) -> bytes:
        with self._lock:
            try:
                return self._objects[key][0]
            except KeyError:
                raise ObjectNotFoundError(f"Object not found: {key}") from None

    def put_object(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> StoredObject:
        meta = StoredObject(
            key=key,
            size=len(data),
            last_modified=datetime.now(timezone.utc),
            etag=hashlib.md5(data, usedforsecurity=False).hexdigest(),
        )
        with self._lock:
            self._objects[key] = (bytes(data), meta)
        return meta

    def copy_object(self, source: str, destination: str) -> None:
        data = self.get_object(source)
        self.put_object(destination, data)

    def remove_object(self, key: str) -> None:
        # S3 deletes are idempotent; removing a missing key is not an error.
        with self._lock:
            self._objects.pop(key, None)

    def stat_object(self, key: str) -> Optional[StoredObject]:
        with self._lock:
            entry = self._objects.get(key)
        return entry[1] if entry else None


__all__ = ["MemoryObjectStore"]
