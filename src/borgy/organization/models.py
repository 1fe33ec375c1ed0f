"""Organization data models."""

from __future__ import annotations

import posixpath
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from borgy.classification.normalize import normalize_folder_name
from borgy.state.models import MoveAction, MoveKind
from borgy.store.base import StoredObject


def parent_folder(key: str) -> Optional[str]:
    """Return everything before the last `/` of ``key``, or None at the bucket root."""
    parent = posixpath.dirname(key)
    return parent or None


def basename(key: str) -> str:
    """Return the last path segment of ``key``."""
    return key.rsplit("/", 1)[-1]


class ObjectRecord(BaseModel):
    """An unorganized object as seen in one listing.

    Attributes:
        name: Full object key.
        size: Size in bytes.
        last_modified: Timestamp reported by the store.
        display_name: Last path segment of the key; the only part the classifier sees.
        file_type: Extension of the display name without the dot (may be empty).
    """

    name: str
    size: int = 0
    last_modified: Optional[datetime] = None
    display_name: str
    file_type: str = ""

    @classmethod
    def from_stored(cls, stored: StoredObject) -> "ObjectRecord":
        display = basename(stored.key)
        extension = display.rsplit(".", 1)[-1].lower() if "." in display else ""
        return cls(
            name=stored.key,
            size=stored.size,
            last_modified=stored.last_modified,
            display_name=display,
            file_type=extension,
        )

    @property
    def original_folder(self) -> Optional[str]:
        return parent_folder(self.name)


class OrganizationEntry(BaseModel):
    """Target folder proposed for one object.

    Attributes:
        object_key: Full key of the object to move.
        suggested_folder: Normalized folder slug.
        original_folder: Parent path of ``object_key`` when it was listed, if any.
    """

    object_key: str
    suggested_folder: str
    original_folder: Optional[str] = None


class OrganizationSuggestion(BaseModel):
    """Entries for every listed object plus the folders they use.

    ``distinct_folders`` is always derived from ``entries`` in first-seen
    order; call ``refresh_folders`` after editing entries directly.
    """

    entries: List[OrganizationEntry] = Field(default_factory=list)
    distinct_folders: List[str] = Field(default_factory=list)

    def refresh_folders(self) -> None:
        self.distinct_folders = list(dict.fromkeys(e.suggested_folder for e in self.entries))

    def folder_for(self, object_key: str) -> Optional[str]:
        for entry in self.entries:
            if entry.object_key == object_key:
                return entry.suggested_folder
        return None

    def assign(self, object_key: str, folder: str) -> None:
        """Point ``object_key`` at ``folder`` (normalized) and refresh the folder set.

        Raises:
            KeyError: If the suggestion has no entry for ``object_key``.
        """
        for entry in self.entries:
            if entry.object_key == object_key:
                entry.suggested_folder = normalize_folder_name(folder)
                self.refresh_folders()
                return
        raise KeyError(object_key)

    def rename_folder(self, old: str, new: str) -> None:
        """Move every entry in folder ``old`` to folder ``new``."""
        target = normalize_folder_name(new)
        for entry in self.entries:
            if entry.suggested_folder == old:
                entry.suggested_folder = target
        self.refresh_folders()


class MoveOperation(BaseModel):
    """Represents moving one object to a new key.

    Attributes:
        source: Key of the object before the move.
        destination: Key of the object after the move.
        folder: Folder slug the object is filed under.
        reasoning: Optional explanation for the move.
        conflict_strategy: Conflict policy applied when resolving key collisions.
        conflict_applied: Indicates whether a collision was encountered.
        replaces_existing: True when the destination already existed before the batch
            and the overwrite policy lets the copy replace it.
    """

    source: str
    destination: str
    folder: str
    reasoning: Optional[str] = None
    conflict_strategy: Optional[str] = None
    conflict_applied: bool = False
    replaces_existing: bool = False


class OperationPlan(BaseModel):
    """Ordered moves for one apply call.

    ``skipped`` lists no-ops and conflicts left alone by policy; ``rejected``
    maps keys that may never be moved to the reason they were refused.
    """

    kind: MoveKind = "batch-organize"
    moves: List[MoveOperation] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    rejected: Dict[str, str] = Field(default_factory=dict)
    notes: List[str] = Field(default_factory=list)


class ApplyResult(BaseModel):
    """Outcome of applying a plan.

    Attributes:
        batch_id: Identifier of the recorded history batch, if one was written.
        actions: Moves that left the object at its new key.
        failures: Source key mapped to the error that stopped or degraded its move.
        notes: Informational messages (skips, rollbacks, no-ops).
        history_error: Message when the history batch could not be recorded.
    """

    batch_id: Optional[str] = None
    actions: List[MoveAction] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)
    notes: List[str] = Field(default_factory=list)
    history_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.failures and self.history_error is None


class RevertResult(BaseModel):
    """Outcome of reverting the newest history batch.

    Attributes:
        status: `reverted`, `empty` (nothing to revert) or `partial`.
        batch_id: Identifier of the batch that was removed from history.
        restored: Actions whose object is back at its original key.
        failures: New key mapped to the error that prevented restoring it.
    """

    status: Literal["reverted", "empty", "partial"]
    batch_id: Optional[str] = None
    restored: List[MoveAction] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status != "partial"

    @property
    def nothing_to_revert(self) -> bool:
        return self.status == "empty"


__all__ = [
    "ApplyResult",
    "MoveOperation",
    "ObjectRecord",
    "OperationPlan",
    "OrganizationEntry",
    "OrganizationSuggestion",
    "RevertResult",
    "basename",
    "parent_folder",
]
