"""Append-only organization history persisted as one document in the object store."""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from pydantic import ValidationError

from borgy.store import ObjectNotFoundError, ObjectStore

from .errors import HistoryConflictError, HistoryCorruptionError, StateError
from .models import HISTORY_ADAPTER, HistoryBatch, MoveAction, new_batch_id

LOGGER = logging.getLogger(__name__)

DEFAULT_HISTORY_KEY = "_metadata/organization_history.json"

_T = TypeVar("_T")


class HistoryRepository:
    """Read-modify-write access to the organization history document.

    A missing document is an empty history. When ``verify_version`` is on,
    the version token read with the document must still be current right
    before the write; otherwise the whole read-modify-write is retried. The
    check narrows the lost-update window but does not close it, so callers
    should still run one apply/revert at a time.
    """

    def __init__(
        self,
        store: ObjectStore,
        key: str = DEFAULT_HISTORY_KEY,
        *,
        verify_version: bool = True,
        max_retries: int = 3,
    ) -> None:
        self._store = store
        self._key = key
        self._verify_version = verify_version
        self._max_retries = max(max_retries, 0)

    @property
    def key(self) -> str:
        """Return the object key of the history document."""
        return self._key

    def load(self) -> list[HistoryBatch]:
        """Return every batch, oldest first.

        Raises:
            HistoryCorruptionError: If the stored document cannot be parsed.
        """
        batches, _ = self._read()
        return batches

    def read_batches(self, limit: Optional[int] = None) -> list[HistoryBatch]:
        """Return the most recent batches, newest first.

        Args:
            limit: Maximum number of batches to return; None returns all.
        """
        batches = list(reversed(self.load()))
        return batches if limit is None else batches[: max(limit, 0)]

    def append(self, batch: HistoryBatch) -> None:
        """Append ``batch`` to the end of the history.

        A corrupt document is preserved under a side key and replaced by a
        fresh history containing only ``batch``.

        Raises:
            HistoryConflictError: If concurrent writers exhaust the retries.
            StoreError: If the document cannot be read or written.
        """

        def _attempt() -> None:
            try:
                batches, etag = self._read()
            except HistoryCorruptionError as exc:
                LOGGER.warning("Organization history is unreadable, starting a new one: %s", exc)
                etag = self._preserve_corrupt_document()
                batches = []
            batches.append(batch)
            self._write(batches, etag)

        self._with_retries(_attempt)
        LOGGER.debug("Recorded batch %s with %d actions", batch.batch_id, len(batch.actions))

    def pop_last(self) -> Optional[HistoryBatch]:
        """Remove and return the newest batch, or None if the history is empty.

        Raises:
            HistoryCorruptionError: If the stored document cannot be parsed.
            HistoryConflictError: If concurrent writers exhaust the retries.
        """

        def _attempt() -> Optional[HistoryBatch]:
            batches, etag = self._read()
            if not batches:
                return None
            last = batches.pop()
            self._write(batches, etag)
            return last

        return self._with_retries(_attempt)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _with_retries(self, operation: Callable[[], _T]) -> _T:
        attempt = 0
        while True:
            try:
                return operation()
            except HistoryConflictError:
                if attempt >= self._max_retries:
                    raise
                attempt += 1
                LOGGER.info(
                    "History changed during update; retry %d of %d", attempt, self._max_retries
                )

    def _read(self) -> tuple[list[HistoryBatch], Optional[str]]:
        meta = self._store.stat_object(self._key)
        if meta is None:
            return [], None
        try:
            raw = self._store.get_object(self._key)
        except ObjectNotFoundError:
            return [], None
        return self._parse(raw), meta.etag

    def _parse(self, raw: bytes) -> list[HistoryBatch]:
        if not raw.strip():
            return []
        try:
            return HISTORY_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            raise HistoryCorruptionError(f"Invalid history document {self._key}: {exc}") from exc

    def _write(self, batches: list[HistoryBatch], expected_etag: Optional[str]) -> None:
        if self._verify_version:
            current = self._store.stat_object(self._key)
            current_etag = current.etag if current else None
            if current_etag != expected_etag:
                raise HistoryConflictError(
                    f"History document {self._key} changed since it was read"
                )
        payload = HISTORY_ADAPTER.dump_json(batches, by_alias=True, indent=2)
        self._store.put_object(self._key, payload, content_type="application/json")

    def _preserve_corrupt_document(self) -> Optional[str]:
        meta = self._store.stat_object(self._key)
        if meta is None:
            return None
        backup_key = self._key.replace(".json", "") + f".corrupt-{new_batch_id()}.json"
        self._store.copy_object(self._key, backup_key)
        LOGGER.warning("Saved unreadable history to %s", backup_key)
        return meta.etag


__all__ = [
    "DEFAULT_HISTORY_KEY",
    "HistoryBatch",
    "HistoryConflictError",
    "HistoryCorruptionError",
    "HistoryRepository",
    "MoveAction",
    "StateError",
]
