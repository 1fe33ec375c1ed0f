"""Chat transports used by the classifier gateway."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import requests
from openai import OpenAI, OpenAIError

from borgy.config.models import LLMSettings

from .errors import GatewayError

LOGGER = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class ChatTransport(Protocol):
    """Send chat messages to a backend and return the assistant text."""

    name: str

    def complete(self, messages: list[dict[str, str]], *, json_mode: bool) -> str: ...


class OpenAIChatTransport:
    """Chat completions through the ``openai`` SDK (also fits OpenAI-compatible servers)."""

    name = "openai"

    def __init__(self, settings: LLMSettings, *, client: Optional[OpenAI] = None) -> None:
        self._settings = settings
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self._settings.api_key,
                base_url=self._settings.base_url,
                timeout=self._settings.timeout_seconds,
                max_retries=0,
            )
        return self._client

    def complete(self, messages: list[dict[str, str]], *, json_mode: bool) -> str:
        extra: dict[str, Any] = {}
        if json_mode:
            extra["response_format"] = {"type": "json_object"}
        try:
            completion = self._get_client().chat.completions.create(
                model=self._settings.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
                **extra,
            )
        except OpenAIError as exc:
            raise GatewayError(f"OpenAI request failed: {exc}") from exc

        if not completion.choices:
            raise GatewayError("OpenAI response contained no choices")
        content = completion.choices[0].message.content
        if not content:
            raise GatewayError("OpenAI response was empty")
        return content


class OllamaChatTransport:
    """Chat requests against an Ollama server's ``/api/chat`` endpoint."""

    name = "ollama"

    def __init__(
        self, settings: LLMSettings, *, session: Optional[requests.Session] = None
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()
        self._base_url = (settings.base_url or DEFAULT_OLLAMA_URL).rstrip("/")

    def complete(self, messages: list[dict[str, str]], *, json_mode: bool) -> str:
        payload: dict[str, Any] = {
            "model": self._settings.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self._settings.temperature,
                "num_predict": self._settings.max_tokens,
            },
        }
        if json_mode:
            payload["format"] = "json"

        try:
            response = self._session.post(
                f"{self._base_url}/api/chat",
                json=payload,
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            raise GatewayError(f"Ollama request failed: {exc}") from exc
        except ValueError as exc:
            raise GatewayError(f"Ollama returned a non-JSON body: {exc}") from exc

        message = body.get("message") if isinstance(body, dict) else None
        if not isinstance(message, dict):
            raise GatewayError("Ollama response had no message object")
        content = message.get("content")
        if not isinstance(content, str):
            raise GatewayError(f"Ollama message content was {type(content).__name__}, not text")
        if not content:
            raise GatewayError("Ollama response was empty")
        return content


def transport_for(settings: LLMSettings) -> Optional[ChatTransport]:
    """Return the transport for ``settings.provider``, or None when disabled."""
    if settings.provider == "openai":
        return OpenAIChatTransport(settings)
    if settings.provider == "ollama":
        return OllamaChatTransport(settings)
    LOGGER.info("Language-model provider disabled; classification uses fallback rules only.")
    return None


__all__ = [
    "ChatTransport",
    "DEFAULT_OLLAMA_URL",
    "OllamaChatTransport",
    "OpenAIChatTransport",
    "transport_for",
]
