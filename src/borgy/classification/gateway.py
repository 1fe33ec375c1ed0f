"""Gateway between Borgy and a language-model backend."""

from __future__ import annotations

import logging
from typing import Sequence

from borgy.config.models import LLMSettings

from .errors import GatewayError
from .parsers import ResponseParser, parser_for
from .prompts import build_messages
from .transports import ChatTransport, transport_for

LOGGER = logging.getLogger(__name__)


class ClassifierGateway:
    """Ask a chat backend to place filenames into topic folders.

    The gateway sends a single request per call and never retries; failures
    surface as ``GatewayError`` so the caller decides what happens next. The
    backend only ever sees display names, never full object keys.
    """

    def __init__(
        self,
        transport: ChatTransport,
        *,
        parser: ResponseParser | None = None,
        response_format: str = "json",
        domain: str = "",
    ) -> None:
        self._transport = transport
        self._response_format = response_format
        self._parser = parser or parser_for(response_format)
        self._domain = domain

    @classmethod
    def from_settings(cls, settings: LLMSettings) -> "ClassifierGateway | None":
        """Build a gateway for the configured provider, or None when disabled."""
        transport = transport_for(settings)
        if transport is None:
            return None
        return cls(
            transport,
            response_format=settings.response_format,
            domain=settings.domain,
        )

    def classify(self, names: Sequence[str]) -> dict[str, str]:
        """Return normalized folder slugs for the names the backend answered.

        Args:
            names: Display names to classify.

        Returns:
            dict[str, str]: Subset of ``names`` mapped to folder slugs. Names
                the backend invented are dropped; names it skipped are absent.

        Raises:
            GatewayError: If the call fails or the body cannot be parsed at all.
        """
        requested = list(dict.fromkeys(names))
        if not requested:
            return {}

        messages = build_messages(
            requested, response_format=self._response_format, domain=self._domain
        )
        LOGGER.debug("Requesting folders for %d names via %s", len(requested), self._transport.name)
        try:
            body = self._transport.complete(messages, json_mode=self._response_format == "json")
            parsed = self._parser.parse(body)
        except GatewayError:
            raise
        except (AttributeError, TypeError, ValueError, RecursionError) as exc:
            raise GatewayError(f"Malformed response from {self._transport.name}: {exc}") from exc
        return self._align(requested, parsed)

    def _align(self, requested: list[str], parsed: dict[str, str]) -> dict[str, str]:
        by_casefold = {name.casefold(): folder for name, folder in parsed.items()}
        aligned: dict[str, str] = {}
        for name in requested:
            if name in parsed:
                aligned[name] = parsed[name]
            elif name.casefold() in by_casefold:
                aligned[name] = by_casefold[name.casefold()]

        requested_keys = {name.casefold() for name in requested}
        unknown = [name for name in parsed if name.casefold() not in requested_keys]
        if unknown:
            LOGGER.debug("Ignoring %d names the backend was not asked about", len(unknown))
        return aligned


__all__ = ["ClassifierGateway", "GatewayError"]
