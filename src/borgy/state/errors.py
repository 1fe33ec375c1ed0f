"""History store errors."""


class StateError(Exception):
    """Base exception for history store operations."""


class HistoryCorruptionError(StateError):
    """Raised when the persisted history document cannot be parsed."""


class HistoryConflictError(StateError):
    """Raised when the history document changed between read and write."""
