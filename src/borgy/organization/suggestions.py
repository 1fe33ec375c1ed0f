"""Turn classifier output into a complete organization suggestion."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Mapping, Sequence

from borgy.classification.models import ClassificationOutcome
from borgy.classification.normalize import (
    CANONICAL_LABELS,
    canonicalize_folder,
    normalize_folder_name,
)
from borgy.config.models import OrganizationOptions

from .models import ObjectRecord, OrganizationEntry, OrganizationSuggestion, parent_folder

LOGGER = logging.getLogger(__name__)


def most_common(values: Sequence[str]) -> str:
    """Return the most frequent value; ties go to the value seen first."""
    counts = Counter(values)
    best = values[0]
    for value in values:
        if counts[value] > counts[best]:
            best = value
    return best


class SuggestionBuilder:
    """Assign every listed object exactly one normalized folder."""

    def __init__(
        self,
        options: OrganizationOptions | None = None,
        *,
        canonical_labels: Mapping[str, str] = CANONICAL_LABELS,
    ) -> None:
        self._options = options or OrganizationOptions()
        self._labels = canonical_labels

    @property
    def default_folder(self) -> str:
        return normalize_folder_name(self._options.default_folder)

    def build(
        self, records: Sequence[ObjectRecord], outcome: ClassificationOutcome
    ) -> OrganizationSuggestion:
        """Merge ``outcome`` with ``records`` into one entry per record.

        Canonicalization and prefix grouping only run when at least part of
        the labels came from the language model; a full fallback keeps the
        rule table's choices untouched.

        Args:
            records: Objects returned by the unorganized listing.
            outcome: Folder labels keyed by display name.

        Returns:
            OrganizationSuggestion: Entries in ``records`` order.
        """
        labels = {name: self._normalize(label) for name, label in outcome.folders.items()}
        if outcome.source != "fallback":
            if self._options.canonicalize_folders:
                labels = {
                    name: self._normalize(canonicalize_folder(label, self._labels))
                    for name, label in labels.items()
                }
            if self._options.group_by_prefix:
                ordered = list(dict.fromkeys(record.display_name for record in records))
                labels = self._group_by_prefix(ordered, labels)

        suggestion = OrganizationSuggestion(
            entries=[
                OrganizationEntry(
                    object_key=record.name,
                    suggested_folder=labels.get(record.display_name) or self.default_folder,
                    original_folder=record.original_folder,
                )
                for record in records
            ]
        )
        suggestion.refresh_folders()
        return suggestion

    def reconcile(self, suggestion: OrganizationSuggestion) -> OrganizationSuggestion:
        """Return a validated copy of an edited suggestion.

        Entries are authoritative: folders are re-normalized, repeated object
        keys keep their first entry, ``original_folder`` is re-derived from
        the key and ``distinct_folders`` is rebuilt from the entries.
        """
        seen: set[str] = set()
        entries: list[OrganizationEntry] = []
        for entry in suggestion.entries:
            if entry.object_key in seen:
                LOGGER.warning("Ignoring repeated entry for %s", entry.object_key)
                continue
            seen.add(entry.object_key)
            entries.append(
                OrganizationEntry(
                    object_key=entry.object_key,
                    suggested_folder=self._normalize(entry.suggested_folder),
                    original_folder=parent_folder(entry.object_key),
                )
            )

        reconciled = OrganizationSuggestion(entries=entries)
        reconciled.refresh_folders()
        dropped = [f for f in suggestion.distinct_folders if f not in reconciled.distinct_folders]
        if dropped:
            LOGGER.info("Dropping folders with no entries: %s", ", ".join(dropped))
        return reconciled

    def _normalize(self, label: str) -> str:
        return normalize_folder_name(label, default=self._options.default_folder)

    def _group_by_prefix(self, names: Iterable[str], labels: dict[str, str]) -> dict[str, str]:
        delimiter = self._options.prefix_delimiter
        groups: dict[str, list[str]] = {}
        for name in names:
            if name not in labels or not delimiter or delimiter not in name:
                continue
            groups.setdefault(name.split(delimiter, 1)[0], []).append(name)

        grouped = dict(labels)
        for prefix, members in groups.items():
            if len(members) < 2:
                continue
            winner = most_common([labels[name] for name in members])
            for name in members:
                if grouped[name] != winner:
                    LOGGER.debug("Grouping %s with prefix %r into %s", name, prefix, winner)
                grouped[name] = winner
        return grouped


__all__ = ["SuggestionBuilder", "most_common"]
