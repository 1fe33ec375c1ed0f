"""Organization engine: listing, suggestions, planning and execution."""

from .executor import OperationExecutor
from .lister import UnorganizedLister, is_organized_key
from .models import (
    ApplyResult,
    MoveOperation,
    ObjectRecord,
    OperationPlan,
    OrganizationEntry,
    OrganizationSuggestion,
    RevertResult,
)
from .planner import OrganizerPlanner
from .service import OrganizerService
from .suggestions import SuggestionBuilder

__all__ = [
    "ApplyResult",
    "MoveOperation",
    "ObjectRecord",
    "OperationExecutor",
    "OperationPlan",
    "OrganizationEntry",
    "OrganizationSuggestion",
    "OrganizerPlanner",
    "OrganizerService",
    "RevertResult",
    "SuggestionBuilder",
    "UnorganizedLister",
    "is_organized_key",
]
