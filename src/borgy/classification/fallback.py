"""Deterministic filename classifier used when the language model is unavailable."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from borgy.config.models import FallbackRule


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """Assign ``folder`` to any filename containing one of ``keywords``."""

    keywords: tuple[str, ...]
    folder: str

    def matches(self, filename: str) -> bool:
        lowered = filename.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords)


DEFAULT_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(("1099",), "Tax Documents"),
    KeywordRule(("Addendum",), "Contract Addendums"),
    KeywordRule(("Affidavit",), "Legal Documents"),
    KeywordRule(("Agent",), "Agent Communications"),
    KeywordRule(("Appraisal",), "Property Valuation"),
    KeywordRule(("Asbestos", "Inspection"), "Inspection Reports"),
    KeywordRule(("Attorney",), "Legal Correspondence"),
    KeywordRule(("Balance", "Statement"), "Financial Documents"),
    KeywordRule(("Tenant", "Lease"), "Tenant Records"),
    KeywordRule(("Insurance",), "Insurance Documents"),
    KeywordRule(("Tax",), "Tax Documents"),
    KeywordRule(("Title",), "Title Documents"),
    KeywordRule(("Property",), "Property Documents"),
    KeywordRule(("Loan",), "Loan Documents"),
    KeywordRule(("HOA",), "HOA Documents"),
    KeywordRule(("Utility",), "Utilities"),
    KeywordRule(("Contract",), "Contracts"),
)


class FallbackClassifier:
    """Ordered substring rules; the first matching rule wins.

    ``classify`` is total: a filename no rule matches gets ``default_folder``.
    """

    def __init__(
        self,
        rules: Sequence[KeywordRule] = DEFAULT_RULES,
        *,
        default_folder: str = "Miscellaneous",
    ) -> None:
        if not default_folder.strip():
            raise ValueError("default_folder must not be empty")
        self._rules = tuple(rules)
        self._default_folder = default_folder

    @classmethod
    def with_user_rules(
        cls,
        user_rules: Iterable[FallbackRule],
        *,
        default_folder: str = "Miscellaneous",
    ) -> "FallbackClassifier":
        """Build a classifier that checks configured rules before the defaults."""
        extra = tuple(
            KeywordRule(tuple(rule.match), rule.folder)
            for rule in user_rules
            if rule.match and rule.folder.strip()
        )
        return cls(extra + DEFAULT_RULES, default_folder=default_folder)

    @property
    def default_folder(self) -> str:
        return self._default_folder

    def classify(self, filename: str) -> str:
        for rule in self._rules:
            if rule.matches(filename):
                return rule.folder
        return self._default_folder

    def classify_all(self, filenames: Iterable[str]) -> dict[str, str]:
        return {name: self.classify(name) for name in filenames}


__all__ = ["DEFAULT_RULES", "FallbackClassifier", "KeywordRule"]
