"""Filename classification: language-model gateway plus deterministic fallback."""

from .engine import ClassificationEngine
from .errors import GatewayError
from .fallback import DEFAULT_RULES, FallbackClassifier, KeywordRule
from .gateway import ClassifierGateway
from .models import ClassificationOutcome
from .normalize import canonicalize_folder, normalize_folder_name

__all__ = [
    "ClassificationEngine",
    "ClassificationOutcome",
    "ClassifierGateway",
    "DEFAULT_RULES",
    "FallbackClassifier",
    "GatewayError",
    "KeywordRule",
    "canonicalize_folder",
    "normalize_folder_name",
]
