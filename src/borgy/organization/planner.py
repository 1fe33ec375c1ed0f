"""Planner turning organization suggestions into concrete moves."""

from __future__ import annotations

import logging
import posixpath
from typing import Iterable

from borgy.classification.normalize import normalize_folder_name
from borgy.state.models import MoveKind

from .models import (
    MoveOperation,
    OperationPlan,
    OrganizationEntry,
    OrganizationSuggestion,
    basename,
    parent_folder,
)

LOGGER = logging.getLogger(__name__)


class OrganizerPlanner:
    """Derive ordered move operations from a finalized suggestion.

    Keys under the metadata prefix, the history document among them, are
    never planned as sources. Two entries of one batch never share a
    destination, whatever the conflict policy; ``overwrite`` only replaces
    objects that existed before the batch.
    """

    def __init__(
        self,
        *,
        organized_prefix: str = "_organized",
        metadata_prefix: str = "_metadata",
        conflict_resolution: str = "append_number",
    ) -> None:
        self._organized_prefix = organized_prefix
        self._metadata_prefix = metadata_prefix
        self._conflict_resolution = conflict_resolution

    def destination_for(self, object_key: str, folder: str) -> str:
        """Return ``<organized-prefix>/<folder>/<basename>`` for ``object_key``."""
        return f"{self._organized_prefix}/{folder}/{basename(object_key)}"

    def is_reserved(self, object_key: str) -> bool:
        """Return True for keys Borgy keeps for its own metadata."""
        return object_key == self._metadata_prefix or object_key.startswith(
            f"{self._metadata_prefix}/"
        )

    def build_plan(
        self,
        suggestion: OrganizationSuggestion,
        existing_keys: Iterable[str] = (),
        *,
        kind: MoveKind = "batch-organize",
    ) -> OperationPlan:
        """Produce one move per entry, in entry order.

        Args:
            suggestion: Reconciled suggestion to realize.
            existing_keys: Keys already present in the store, used to detect
                destination collisions.
            kind: History tag recorded for the resulting moves.

        Returns:
            OperationPlan: Moves plus keys skipped as no-ops or conflicts and
                keys rejected as reserved.
        """
        plan = OperationPlan(kind=kind)
        existing = set(existing_keys)
        # Sources of this batch stay claimed until their own delete runs.
        claimed = {entry.object_key for entry in suggestion.entries}

        for entry in suggestion.entries:
            source = entry.object_key
            if self.is_reserved(source):
                LOGGER.warning("Refusing to move reserved metadata key %s", source)
                plan.rejected[source] = f"keys under '{self._metadata_prefix}/' cannot be moved"
                continue

            candidate = self.destination_for(source, entry.suggested_folder)
            if candidate == source:
                plan.skipped.append(source)
                plan.notes.append(f"{source} is already in '{entry.suggested_folder}'")
                continue

            destination, conflict, replaces = self._resolve_conflict(
                source, candidate, existing, claimed
            )
            if conflict and self._conflict_resolution == "skip":
                plan.skipped.append(source)
                plan.notes.append(f"Skipped {source}: {candidate} is already taken")
                continue

            plan.moves.append(
                MoveOperation(
                    source=source,
                    destination=destination,
                    folder=entry.suggested_folder,
                    reasoning=f"Move to folder '{entry.suggested_folder}'",
                    conflict_strategy=self._conflict_resolution if conflict else None,
                    conflict_applied=conflict,
                    replaces_existing=replaces,
                )
            )
            claimed.add(destination)
        return plan

    def build_single(
        self, object_key: str, target_folder: str, existing_keys: Iterable[str] = ()
    ) -> OperationPlan:
        """Plan a manual move of one object into ``target_folder``."""
        entry = OrganizationEntry(
            object_key=object_key,
            suggested_folder=normalize_folder_name(target_folder),
            original_folder=parent_folder(object_key),
        )
        return self.build_plan(
            OrganizationSuggestion(entries=[entry]), existing_keys, kind="manual-move"
        )

    def _resolve_conflict(
        self,
        source: str,
        candidate: str,
        existing: set[str],
        claimed: set[str],
    ) -> tuple[str, bool, bool]:
        def _claimed(key: str) -> bool:
            return key != source and key in claimed

        def _taken(key: str) -> bool:
            return _claimed(key) or (key != source and key in existing)

        if not _taken(candidate):
            return candidate, False, False
        if self._conflict_resolution == "skip":
            return candidate, True, False
        if self._conflict_resolution == "overwrite" and not _claimed(candidate):
            return candidate, True, True

        stem, suffix = posixpath.splitext(candidate)
        counter = 1
        final = f"{stem}-{counter}{suffix}"
        while _taken(final):
            counter += 1
            final = f"{stem}-{counter}{suffix}"
        LOGGER.debug("Destination %s taken; using %s", candidate, final)
        return final, True, False


__all__ = ["OrganizerPlanner"]
