"""Classification errors."""


class GatewayError(Exception):
    """Raised when the language-model backend fails or returns an unusable body."""
