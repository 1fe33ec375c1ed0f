"""Tests for the OpenAI and Ollama chat transports."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests
from openai import OpenAIError

from borgy.classification import (
    ClassificationEngine,
    ClassifierGateway,
    FallbackClassifier,
    GatewayError,
)
from borgy.classification.transports import (
    OllamaChatTransport,
    OpenAIChatTransport,
    transport_for,
)
from borgy.config.models import LLMSettings

MESSAGES = [{"role": "user", "content": "classify"}]


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class _FakeResponse:
    def __init__(self, payload: Any, *, status_error: Exception | None = None) -> None:
        self._payload = payload
        self._status_error = status_error

    def raise_for_status(self) -> None:
        if self._status_error is not None:
            raise self._status_error

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, response: _FakeResponse) -> None:
        self.response = response
        self.requests: list[tuple[str, dict[str, Any], float]] = []

    def post(self, url: str, *, json: dict[str, Any], timeout: float) -> _FakeResponse:
        self.requests.append((url, json, timeout))
        return self.response


def test_openai_transport_requests_json_mode() -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = _completion('{"a.pdf": "Tax"}')
    settings = LLMSettings(model="gpt-4o-mini", temperature=0.0, max_tokens=512)

    body = OpenAIChatTransport(settings, client=client).complete(MESSAGES, json_mode=True)

    assert body == '{"a.pdf": "Tax"}'
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["max_tokens"] == 512


def test_openai_transport_text_mode_omits_response_format() -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = _completion("a.pdf: Tax")

    OpenAIChatTransport(LLMSettings(), client=client).complete(MESSAGES, json_mode=False)

    assert "response_format" not in client.chat.completions.create.call_args.kwargs


def test_openai_transport_empty_content_is_an_error() -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = _completion(None)

    with pytest.raises(GatewayError):
        OpenAIChatTransport(LLMSettings(), client=client).complete(MESSAGES, json_mode=True)


def test_openai_transport_wraps_sdk_errors() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = OpenAIError("rate limited")

    with pytest.raises(GatewayError, match="rate limited"):
        OpenAIChatTransport(LLMSettings(), client=client).complete(MESSAGES, json_mode=True)


def test_ollama_transport_posts_to_chat_endpoint() -> None:
    session = _FakeSession(_FakeResponse({"message": {"content": '{"a.pdf": "Loan"}'}}))
    settings = LLMSettings(
        provider="ollama", model="llama3", base_url="http://ollama:11434/", timeout_seconds=5
    )

    body = OllamaChatTransport(settings, session=session).complete(MESSAGES, json_mode=True)

    assert body == '{"a.pdf": "Loan"}'
    url, payload, timeout = session.requests[0]
    assert url == "http://ollama:11434/api/chat"
    assert payload["model"] == "llama3"
    assert payload["stream"] is False
    assert payload["format"] == "json"
    assert timeout == 5


@pytest.mark.parametrize(
    "response",
    [
        _FakeResponse({}, status_error=requests.HTTPError("500 Server Error")),
        _FakeResponse(ValueError("not json")),
        _FakeResponse({"message": {"content": ""}}),
        _FakeResponse({"message": "not a dict"}),
        _FakeResponse({"message": {"content": ["a.pdf"]}}),
        _FakeResponse(["not", "an", "object"]),
    ],
)
def test_ollama_transport_failures_raise_gateway_error(response: _FakeResponse) -> None:
    transport = OllamaChatTransport(LLMSettings(provider="ollama"), session=_FakeSession(response))

    with pytest.raises(GatewayError):
        transport.complete(MESSAGES, json_mode=False)


def test_malformed_ollama_message_falls_back_to_rules() -> None:
    transport = OllamaChatTransport(
        LLMSettings(provider="ollama"),
        session=_FakeSession(_FakeResponse({"message": "not a dict"})),
    )
    engine = ClassificationEngine(ClassifierGateway(transport), FallbackClassifier())

    outcome = engine.classify(["Lease_Agreement.pdf"])

    assert outcome.source == "fallback"
    assert outcome.folders == {"Lease_Agreement.pdf": "Tenant Records"}


def test_transport_for_provider() -> None:
    assert isinstance(transport_for(LLMSettings(provider="openai")), OpenAIChatTransport)
    assert isinstance(transport_for(LLMSettings(provider="ollama")), OllamaChatTransport)
    assert transport_for(LLMSettings(provider="none")) is None
