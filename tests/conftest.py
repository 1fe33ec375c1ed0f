"""Shared fixtures for the Borgy test suite."""

from __future__ import annotations

from typing import Callable, Sequence, Union

import pytest

from borgy.classification import ClassifierGateway, GatewayError
from borgy.store import MemoryObjectStore

Reply = Union[str, Exception]


class ScriptedTransport:
    """Chat transport that replays canned replies and records every request."""

    name = "scripted"

    def __init__(self, replies: Sequence[Reply]) -> None:
        self._replies = list(replies)
        self.calls: list[tuple[list[dict[str, str]], bool]] = []

    def complete(self, messages: list[dict[str, str]], *, json_mode: bool) -> str:
        self.calls.append((messages, json_mode))
        if not self._replies:
            raise GatewayError("no scripted reply left")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def scripted_gateway() -> Callable[..., tuple[ClassifierGateway, ScriptedTransport]]:
    """Return a factory building a JSON gateway over a scripted transport."""

    def _factory(*replies: Reply) -> tuple[ClassifierGateway, ScriptedTransport]:
        transport = ScriptedTransport(replies)
        return ClassifierGateway(transport, response_format="json"), transport

    return _factory
