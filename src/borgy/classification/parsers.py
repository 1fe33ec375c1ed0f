"""Strategies that turn a backend response body into a filename-to-folder mapping."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

from .errors import GatewayError
from .normalize import normalize_folder_name

LOGGER = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")
_LIST_MARKER = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+")
_QUOTES = "\"'`"
_RECORD_KEYS = ("folder", "category")


class ResponseParser(Protocol):
    """Parse a raw response body into ``{display name: normalized folder}``."""

    def parse(self, body: str) -> dict[str, str]: ...


def _clean_token(value: str) -> str:
    return value.strip().strip(_QUOTES).strip()


class JsonMappingParser:
    """Parse a JSON object whose keys are filenames and values are folders.

    Markdown code fences and chatter around the outermost ``{...}`` are
    tolerated, as are two common wrappings: a single top-level key holding
    the mapping (``{"files": {...}}``) and per-file records such as
    ``{"a.pdf": {"folder": "Reports"}}``. Entries whose folder is not a
    string are skipped. A body that holds no JSON object at all raises
    ``GatewayError``.
    """

    def parse(self, body: str) -> dict[str, str]:
        payload = self._load(body)
        if not isinstance(payload, dict):
            raise GatewayError(f"Expected a JSON object, got {type(payload).__name__}")
        payload = self._unwrap(payload)

        mapping: dict[str, str] = {}
        for name, folder in payload.items():
            if isinstance(folder, dict):
                folder = next((folder[k] for k in _RECORD_KEYS if k in folder), None)
            if not isinstance(folder, str) or not folder.strip() or not str(name).strip():
                LOGGER.debug("Skipping malformed mapping entry %r -> %r", name, folder)
                continue
            mapping[str(name).strip()] = normalize_folder_name(folder)
        return mapping

    def _unwrap(self, payload: dict[Any, Any]) -> dict[Any, Any]:
        if len(payload) != 1:
            return payload
        inner = next(iter(payload.values()))
        # A lone per-file record keeps its filename key.
        if not isinstance(inner, dict) or not set(inner).isdisjoint(_RECORD_KEYS):
            return payload
        return inner

    def _load(self, body: str) -> Any:
        text = _CODE_FENCE.sub("", body.strip())
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise GatewayError("Response did not contain a JSON object")
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc:
            raise GatewayError(f"Failed to parse the response as JSON: {exc}") from exc


class LineMappingParser:
    """Parse ``name: folder`` lines, splitting each line on its first delimiter.

    Lines without the delimiter, or with an empty side, are skipped.
    """

    def __init__(self, delimiter: str = ":") -> None:
        self.delimiter = delimiter

    def parse(self, body: str) -> dict[str, str]:
        mapping: dict[str, str] = {}
        for line in body.splitlines():
            stripped = _LIST_MARKER.sub("", line).strip()
            if not stripped or self.delimiter not in stripped:
                continue
            name, folder = stripped.split(self.delimiter, 1)
            name, folder = _clean_token(name), _clean_token(folder.strip().rstrip(","))
            if not name or not folder:
                LOGGER.debug("Skipping malformed line %r", line)
                continue
            mapping[name] = normalize_folder_name(folder)
        return mapping


def parser_for(response_format: str) -> ResponseParser:
    """Return the parser matching the configured ``llm.response_format``."""
    if response_format == "json":
        return JsonMappingParser()
    if response_format == "text":
        return LineMappingParser()
    raise ValueError(f"Unknown response format: {response_format}")


__all__ = ["JsonMappingParser", "LineMappingParser", "ResponseParser", "parser_for"]
