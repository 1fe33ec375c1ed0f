"""Tests for response parsing, the classifier gateway and the classification engine."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

import pytest

from borgy.classification import (
    ClassificationEngine,
    ClassifierGateway,
    FallbackClassifier,
    GatewayError,
)
from borgy.classification.parsers import JsonMappingParser, LineMappingParser, parser_for
from borgy.classification.prompts import build_messages
from borgy.config.models import LLMSettings

GatewayFactory = Callable[..., tuple[ClassifierGateway, Any]]


def test_json_parser_normalizes_folders() -> None:
    body = json.dumps({"Lease_Agreement.pdf": "Tenant Records", "Tax_Form_1099.pdf": "Tax"})

    assert JsonMappingParser().parse(body) == {
        "Lease_Agreement.pdf": "tenant-records",
        "Tax_Form_1099.pdf": "tax",
    }


def test_json_parser_tolerates_code_fences_and_chatter() -> None:
    body = 'Sure! Here you go:\n```json\n{"a.pdf": "Reports", "b.pdf": 3}\n```'

    assert JsonMappingParser().parse(body) == {"a.pdf": "reports"}


@pytest.mark.parametrize(
    "payload",
    [
        {"files": {"a.pdf": "Reports", "b.pdf": "Loan"}},
        {"a.pdf": {"folder": "Reports"}, "b.pdf": {"category": "Loan", "reason": "terms"}},
        {"result": {"a.pdf": {"folder": "Reports"}, "b.pdf": {"folder": "Loan"}}},
    ],
)
def test_json_parser_unwraps_nested_answers(payload: dict[str, Any]) -> None:
    assert JsonMappingParser().parse(json.dumps(payload)) == {"a.pdf": "reports", "b.pdf": "loan"}


def test_json_parser_keeps_a_single_file_record() -> None:
    for record in ({"folder": "Reports"}, {"folder": "Reports", "reason": "monthly"}):
        body = json.dumps({"a.pdf": record})

        assert JsonMappingParser().parse(body) == {"a.pdf": "reports"}


def test_json_parser_rejects_non_objects() -> None:
    with pytest.raises(GatewayError):
        JsonMappingParser().parse("no json here")
    with pytest.raises(GatewayError):
        JsonMappingParser().parse('["a.pdf"]')


def test_line_parser_skips_malformed_lines() -> None:
    body = "\n".join(
        [
            "- Lease_Agreement.pdf: Tenant Records",
            '"Tax_Form_1099.pdf": "Tax Documents",',
            "2) notes.txt: Misc: Extra",
            "this line has no delimiter",
            "empty.pdf:",
        ]
    )

    assert LineMappingParser().parse(body) == {
        "Lease_Agreement.pdf": "tenant-records",
        "Tax_Form_1099.pdf": "tax-documents",
        "notes.txt": "misc:-extra",
    }


def test_parser_for_unknown_format() -> None:
    assert isinstance(parser_for("text"), LineMappingParser)
    with pytest.raises(ValueError):
        parser_for("xml")


def test_build_messages_lists_every_name() -> None:
    messages = build_messages(["a.pdf", "b.pdf"], response_format="json", domain="Real Estate Deal")

    assert [message["role"] for message in messages] == ["system", "user"]
    assert "a.pdf\nb.pdf" in messages[1]["content"]
    assert "Real Estate Deal" in messages[1]["content"]


def test_gateway_sends_display_names_and_aligns(scripted_gateway: GatewayFactory) -> None:
    reply = json.dumps({"lease_agreement.PDF": "Tenant", "Invented.pdf": "Other"})
    gateway, transport = scripted_gateway(reply)

    result = gateway.classify(["Lease_Agreement.pdf", "Lease_Agreement.pdf", "Tax.pdf"])

    assert result == {"Lease_Agreement.pdf": "tenant"}
    messages, json_mode = transport.calls[0]
    assert json_mode is True
    assert messages[1]["content"].count("Lease_Agreement.pdf") == 1


@pytest.mark.parametrize(
    "failure", [AttributeError("no attribute 'get'"), TypeError("bad type"), RecursionError()]
)
def test_gateway_wraps_unexpected_reply_errors(
    scripted_gateway: GatewayFactory, failure: Exception
) -> None:
    gateway, _ = scripted_gateway(failure)

    with pytest.raises(GatewayError):
        gateway.classify(["a.pdf"])


def test_gateway_from_settings_disabled() -> None:
    assert ClassifierGateway.from_settings(LLMSettings(provider="none")) is None


def test_engine_without_gateway_uses_fallback_for_everything() -> None:
    engine = ClassificationEngine(None, FallbackClassifier())

    outcome = engine.classify(["Lease_Agreement.pdf", "Tax_Form_1099.pdf", "zzz.bin"])

    assert outcome.source == "fallback"
    assert outcome.error is None
    assert outcome.folders == {
        "Lease_Agreement.pdf": "Tenant Records",
        "Tax_Form_1099.pdf": "Tax Documents",
        "zzz.bin": "Miscellaneous",
    }


def test_engine_gateway_failure_falls_back(
    scripted_gateway: GatewayFactory, caplog: pytest.LogCaptureFixture
) -> None:
    gateway, _ = scripted_gateway(GatewayError("timeout"))
    engine = ClassificationEngine(gateway, FallbackClassifier())

    with caplog.at_level(logging.WARNING, logger="borgy"):
        outcome = engine.classify(["Loan_Terms.pdf"])

    assert outcome.source == "fallback"
    assert outcome.error == "timeout"
    assert outcome.folders == {"Loan_Terms.pdf": "Loan Documents"}
    assert "fallback" in caplog.text


def test_engine_fills_names_the_gateway_skipped(
    scripted_gateway: GatewayFactory, caplog: pytest.LogCaptureFixture
) -> None:
    gateway, _ = scripted_gateway(json.dumps({"a_report.pdf": "Reports"}))
    engine = ClassificationEngine(gateway, FallbackClassifier())

    with caplog.at_level(logging.WARNING, logger="borgy"):
        outcome = engine.classify(["a_report.pdf", "Insurance_Policy.pdf"])

    assert outcome.source == "partial"
    assert outcome.fallback_names == ["Insurance_Policy.pdf"]
    assert outcome.folders == {
        "a_report.pdf": "reports",
        "Insurance_Policy.pdf": "Insurance Documents",
    }
    assert "Insurance_Policy.pdf" in caplog.text


def test_engine_retries_before_falling_back(scripted_gateway: GatewayFactory) -> None:
    gateway, transport = scripted_gateway(
        GatewayError("flaky"), json.dumps({"x.pdf": "Contracts"})
    )
    engine = ClassificationEngine(gateway, FallbackClassifier(), retries=1)

    outcome = engine.classify(["x.pdf"])

    assert outcome.source == "gateway"
    assert outcome.folders == {"x.pdf": "contracts"}
    assert len(transport.calls) == 2


def test_engine_unparseable_reply_falls_back(scripted_gateway: GatewayFactory) -> None:
    gateway, _ = scripted_gateway("I cannot help with that.")
    engine = ClassificationEngine(gateway, FallbackClassifier())

    outcome = engine.classify(["Title_Report.pdf"])

    assert outcome.source == "fallback"
    assert outcome.folders == {"Title_Report.pdf": "Title Documents"}


def test_engine_empty_input() -> None:
    outcome = ClassificationEngine(None, FallbackClassifier()).classify([])

    assert outcome.folders == {}
