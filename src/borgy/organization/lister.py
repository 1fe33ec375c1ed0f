"""Enumerate objects that have not been organized yet."""

from __future__ import annotations

import logging

from borgy.store import ObjectStore

from .models import ObjectRecord

LOGGER = logging.getLogger(__name__)


def is_organized_key(key: str, organized_prefix: str) -> bool:
    """Return True when ``key`` contains the reserved organized path segment."""
    segment = f"{organized_prefix}/"
    return key.startswith(segment) or f"/{segment}" in key


class UnorganizedLister:
    """List every object outside the organized and metadata namespaces."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        organized_prefix: str = "_organized",
        metadata_prefix: str = "_metadata",
        recursive: bool = True,
    ) -> None:
        self._store = store
        self._organized_prefix = organized_prefix
        self._metadata_prefix = f"{metadata_prefix}/"
        self._recursive = recursive

    def list(self) -> list[ObjectRecord]:
        """Drain the store listing and return unorganized objects in listing order.

        Raises:
            EnumerationError: If the store fails while the listing is consumed.
        """
        records: list[ObjectRecord] = []
        skipped = 0
        for stored in self._store.list_objects("", recursive=self._recursive):
            key = stored.key
            if not key or key.endswith("/"):
                continue
            if key.startswith(self._metadata_prefix) or is_organized_key(
                key, self._organized_prefix
            ):
                skipped += 1
                continue
            records.append(ObjectRecord.from_stored(stored))
        LOGGER.debug("Listed %d unorganized objects (%d already organized)", len(records), skipped)
        return records


__all__ = ["UnorganizedLister", "is_organized_key"]
