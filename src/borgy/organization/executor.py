"""Executor applying move plans to the object store and reverting them."""

from __future__ import annotations

import logging
from typing import Literal

from borgy.state import HistoryRepository, StateError
from borgy.state.models import HistoryBatch, MoveAction
from borgy.store import ObjectStore, StoreError

from .models import ApplyResult, MoveOperation, OperationPlan, RevertResult

LOGGER = logging.getLogger(__name__)

ApplyMode = Literal["sequential", "two_phase"]


class OperationExecutor:
    """Apply operation plans as copy+delete pairs and record them in history.

    Each copy+delete pair runs to completion before the next one starts, and
    an original is only deleted after its copy succeeded, so every object is
    always present at its original key, its new key, or both.
    """

    def __init__(
        self,
        store: ObjectStore,
        history: HistoryRepository,
        *,
        apply_mode: ApplyMode = "sequential",
    ) -> None:
        self._store = store
        self._history = history
        self._apply_mode = apply_mode

    def apply(self, plan: OperationPlan) -> ApplyResult:
        """Execute ``plan`` and append one history batch for the moves performed.

        Store failures do not stop the batch; they are collected per source
        key, alongside keys the planner rejected, and make the result
        unsuccessful. Completed moves are never rolled back.

        Args:
            plan: Operation plan computed by the planner.

        Returns:
            ApplyResult: Recorded actions, failures and the batch id.
        """
        result = ApplyResult(notes=list(plan.notes), failures=dict(plan.rejected))
        if self._apply_mode == "two_phase":
            self._apply_two_phase(plan, result)
        else:
            self._apply_sequential(plan, result)

        if result.actions:
            self._record(HistoryBatch(actions=result.actions), result)
        return result

    def revert(self) -> RevertResult:
        """Undo the newest history batch.

        The batch is removed from history before any object is moved back,
        so a failure partway through leaves the remaining objects at their
        new keys with no history entry pointing at them; those keys are
        reported in ``failures``.

        Raises:
            HistoryCorruptionError: If the history document cannot be read.
            StoreError: If the history document cannot be loaded or saved.
        """
        batch = self._history.pop_last()
        if batch is None:
            LOGGER.info("Nothing to revert")
            return RevertResult(status="empty")

        result = RevertResult(status="reverted", batch_id=batch.batch_id)
        for action in batch.actions:
            try:
                self._store.copy_object(action.new_path, action.original_path)
                self._store.remove_object(action.new_path)
            except StoreError as exc:
                LOGGER.error(
                    "Could not restore %s from %s: %s", action.original_path, action.new_path, exc
                )
                result.failures[action.new_path] = str(exc)
                continue
            LOGGER.debug("Restored %s -> %s", action.new_path, action.original_path)
            result.restored.append(action)

        if result.failures:
            result.status = "partial"
        return result

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _apply_sequential(self, plan: OperationPlan, result: ApplyResult) -> None:
        for move in plan.moves:
            try:
                self._store.copy_object(move.source, move.destination)
            except StoreError as exc:
                LOGGER.error("Could not copy %s to %s: %s", move.source, move.destination, exc)
                result.failures[move.source] = str(exc)
                continue
            result.actions.append(self._action(move, plan))
            self._delete_original(move, result)

    def _apply_two_phase(self, plan: OperationPlan, result: ApplyResult) -> None:
        # Copies that replace an existing object run last and only while
        # every other copy has succeeded.
        ordered = sorted(plan.moves, key=lambda move: move.replaces_existing)
        copied: list[MoveOperation] = []
        copy_failed = False
        for move in ordered:
            if move.replaces_existing and copy_failed:
                result.notes.append(f"Did not replace {move.destination}; an earlier copy failed")
                continue
            try:
                self._store.copy_object(move.source, move.destination)
            except StoreError as exc:
                LOGGER.error("Could not copy %s to %s: %s", move.source, move.destination, exc)
                result.failures[move.source] = str(exc)
                copy_failed = True
                continue
            copied.append(move)

        if copy_failed:
            for move in copied:
                if move.replaces_existing:
                    result.notes.append(
                        f"Kept {move.destination}; it replaced an object that existed before"
                    )
                    continue
                try:
                    self._store.remove_object(move.destination)
                except StoreError as exc:
                    LOGGER.error("Could not remove partial copy %s: %s", move.destination, exc)
                    result.notes.append(f"Left duplicate copy at {move.destination}")
            result.notes.append("Copy phase failed; no originals were deleted.")
            return

        for move in plan.moves:
            if move in copied:
                result.actions.append(self._action(move, plan))
                self._delete_original(move, result)

    def _delete_original(self, move: MoveOperation, result: ApplyResult) -> None:
        try:
            self._store.remove_object(move.source)
        except StoreError as exc:
            LOGGER.error("Copied %s but could not delete the original: %s", move.source, exc)
            result.failures[move.source] = f"copied to {move.destination}; delete failed: {exc}"
            return
        LOGGER.debug("Moved %s -> %s", move.source, move.destination)

    def _action(self, move: MoveOperation, plan: OperationPlan) -> MoveAction:
        return MoveAction(original_path=move.source, new_path=move.destination, kind=plan.kind)

    def _record(self, batch: HistoryBatch, result: ApplyResult) -> None:
        try:
            self._history.append(batch)
        except (StateError, StoreError) as exc:
            LOGGER.error(
                "Moves were applied but could not be recorded in history: %s. Moved: %s",
                exc,
                "; ".join(f"{a.original_path} -> {a.new_path}" for a in batch.actions),
            )
            result.history_error = str(exc)
            return
        result.batch_id = batch.batch_id


__all__ = ["ApplyMode", "OperationExecutor"]
