"""History data models.

Field aliases match the persisted document shape:
``[{"batch": ..., "actions": [{"originalPath", "newPath", "timestamp", "action"}]}]``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

MoveKind = Literal["batch-organize", "manual-move"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_batch_id() -> str:
    """Return a timestamp-derived batch identifier."""
    return _utcnow().isoformat().replace("+00:00", "Z")


class MoveAction(BaseModel):
    """One object moved from ``original_path`` to ``new_path``."""

    model_config = ConfigDict(populate_by_name=True)

    original_path: str = Field(alias="originalPath")
    new_path: str = Field(alias="newPath")
    timestamp: datetime = Field(default_factory=_utcnow)
    kind: MoveKind = Field(default="batch-organize", alias="action")


class HistoryBatch(BaseModel):
    """Every move performed by one apply call; the unit of revert."""

    model_config = ConfigDict(populate_by_name=True)

    batch_id: str = Field(default_factory=new_batch_id, alias="batch")
    actions: List[MoveAction] = Field(default_factory=list)


HISTORY_ADAPTER: TypeAdapter[List[HistoryBatch]] = TypeAdapter(List[HistoryBatch])


__all__ = ["HISTORY_ADAPTER", "HistoryBatch", "MoveAction", "MoveKind", "new_batch_id"]
