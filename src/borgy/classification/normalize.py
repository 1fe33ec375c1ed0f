"""Folder-name normalization and canonical labels."""

from __future__ import annotations

import re
from typing import Mapping

DEFAULT_FOLDER_SLUG = "miscellaneous"

_WHITESPACE = re.compile(r"\s+")
_HYPHEN_RUNS = re.compile(r"-{2,}")

# Keys are normalized tokens; values are the preferred human-readable labels.
CANONICAL_LABELS: Mapping[str, str] = {
    "1099": "Tax Documents",
    "forms": "Tax Documents",
    "tax": "Tax Documents",
    "addendum": "Contract Addendums",
    "emails": "Communications",
    "correspondence": "Communications",
    "report": "Reports",
    "financial": "Financial Documents",
    "statement": "Financial Documents",
    "loan": "Loan Documents",
    "insurance": "Insurance Documents",
    "tenant": "Tenant Records",
    "hoa": "HOA Documents",
    "title": "Title Documents",
    "permits": "Permits",
    "inspection": "Inspection Reports",
    "legal": "Legal Documents",
    "utility": "Utilities",
    "property": "Property Documents",
    "contract": "Contracts",
}


def normalize_folder_name(value: str, *, default: str = DEFAULT_FOLDER_SLUG) -> str:
    """Return the slug form of a folder label.

    Trims, lowercases, turns path separators into spaces so a label never
    spans more than one folder level, and collapses whitespace runs into a
    single hyphen. Labels made only of dots become the default, so a slug is
    never a relative path segment. ``normalize_folder_name(normalize_folder_name(x))``
    always equals ``normalize_folder_name(x)``.

    Args:
        value: Raw folder label from a classifier or a user edit.
        default: Slug returned when ``value`` normalizes to an empty or dot-only string.

    Returns:
        str: Non-empty normalized folder slug.
    """
    text = value.replace("/", " ").replace("\\", " ").strip().lower()
    text = _WHITESPACE.sub("-", text)
    text = _HYPHEN_RUNS.sub("-", text).strip("-")
    if not text.strip("."):
        return normalize_folder_name(default) if default.strip() else DEFAULT_FOLDER_SLUG
    return text


def canonicalize_folder(
    value: str, labels: Mapping[str, str] = CANONICAL_LABELS
) -> str:
    """Swap a known low-quality folder token for its canonical label.

    Unknown tokens are returned unchanged, so the mapping is total.
    """
    return labels.get(normalize_folder_name(value), value)


__all__ = [
    "CANONICAL_LABELS",
    "DEFAULT_FOLDER_SLUG",
    "canonicalize_folder",
    "normalize_folder_name",
]
