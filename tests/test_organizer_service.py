"""End-to-end tests for applying, reverting and moving objects."""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable

import pytest

from borgy.classification import ClassifierGateway
from borgy.config import BorgyConfig, resolve_with_precedence
from borgy.organization import (
    ApplyResult,
    OrganizationEntry,
    OrganizationSuggestion,
    OrganizerService,
)
from borgy.state import HistoryRepository
from borgy.store import MemoryObjectStore, StoreMutationError

HISTORY_KEY = "_metadata/organization_history.json"


class _FlakyStore(MemoryObjectStore):
    """Memory store whose copies or deletes fail for selected keys."""

    def __init__(
        self,
        objects: dict[str, bytes],
        *,
        fail_copy: Iterable[str] = (),
        fail_remove: Iterable[str] = (),
    ) -> None:
        super().__init__(objects)
        self.fail_copy = set(fail_copy)
        self.fail_remove = set(fail_remove)

    def copy_object(self, source: str, destination: str) -> None:
        if source in self.fail_copy:
            raise StoreMutationError(f"copy of {source} refused")
        super().copy_object(source, destination)

    def remove_object(self, key: str) -> None:
        if key in self.fail_remove:
            raise StoreMutationError(f"delete of {key} refused")
        super().remove_object(key)


def _config(**overrides: Any) -> BorgyConfig:
    layer: dict[str, Any] = {"llm.provider": "none"}
    layer.update(overrides)
    return resolve_with_precedence(defaults=BorgyConfig(), cli_overrides=layer)


def _service(store: MemoryObjectStore, **overrides: Any) -> OrganizerService:
    return OrganizerService.from_config(_config(**overrides), store=store)


def _history(store: MemoryObjectStore) -> list[dict[str, Any]]:
    return json.loads(store.get_object(HISTORY_KEY))


def _organize(service: OrganizerService) -> ApplyResult:
    return service.apply_organization(service.suggest_organization(service.list_unorganized()))


def test_suggest_apply_and_revert_round_trip() -> None:
    store = MemoryObjectStore({"Lease_Agreement.pdf": b"lease", "Tax_Form_1099.pdf": b"tax"})
    service = _service(store)

    suggestion = service.suggest_organization(service.list_unorganized())
    assert suggestion.distinct_folders == ["tenant-records", "tax-documents"]

    result = service.apply_organization(suggestion)

    assert result.success
    assert result.batch_id is not None
    assert store.keys() == [
        "_metadata/organization_history.json",
        "_organized/tax-documents/Tax_Form_1099.pdf",
        "_organized/tenant-records/Lease_Agreement.pdf",
    ]
    assert service.list_unorganized() == []
    history = _history(store)
    assert [a["originalPath"] for a in history[0]["actions"]] == [
        "Lease_Agreement.pdf",
        "Tax_Form_1099.pdf",
    ]

    revert = service.revert_last_organization()

    assert revert.status == "reverted"
    assert revert.batch_id == result.batch_id
    assert store.keys() == [
        "Lease_Agreement.pdf",
        "Tax_Form_1099.pdf",
        "_metadata/organization_history.json",
    ]
    assert store.get_object("Lease_Agreement.pdf") == b"lease"
    assert _history(store) == []


def test_each_apply_adds_one_batch_and_reverts_go_newest_first() -> None:
    store = MemoryObjectStore({"a_report.pdf": b"1"})
    service = _service(store)

    first = _organize(service)
    store.put_object("Loan_Terms.pdf", b"2")
    second = _organize(service)

    assert [batch.batch_id for batch in service.history()] == [second.batch_id, first.batch_id]

    assert service.revert_last_organization().batch_id == second.batch_id
    assert "Loan_Terms.pdf" in store
    assert "_organized/miscellaneous/a_report.pdf" in store

    assert service.revert_last_organization().batch_id == first.batch_id
    assert "a_report.pdf" in store

    empty = service.revert_last_organization()
    assert empty.nothing_to_revert
    assert empty.success


def test_empty_bucket_produces_empty_suggestion_and_no_history() -> None:
    store = MemoryObjectStore()
    service = _service(store)

    suggestion = service.suggest_organization(service.list_unorganized())
    result = service.apply_organization(suggestion)

    assert suggestion.entries == []
    assert result.actions == []
    assert result.batch_id is None
    assert HISTORY_KEY not in store


def test_edited_suggestion_is_reconciled_before_apply() -> None:
    store = MemoryObjectStore({"deal/a.pdf": b"a", "b.pdf": b"b"})
    service = _service(store)
    edited = OrganizationSuggestion(
        entries=[
            OrganizationEntry(object_key="deal/a.pdf", suggested_folder="Closing Docs"),
            OrganizationEntry(object_key="b.pdf", suggested_folder="Closing Docs"),
        ],
        distinct_folders=["something-else"],
    )

    result = service.apply_organization(edited)

    assert result.success
    assert "_organized/closing-docs/a.pdf" in store
    assert "_organized/closing-docs/b.pdf" in store


def test_collision_with_existing_organized_object_gets_a_suffix() -> None:
    store = MemoryObjectStore(
        {"_organized/reports/report.pdf": b"old", "deal/report.pdf": b"new"}
    )
    service = _service(store)

    result = service.apply_organization(
        OrganizationSuggestion(
            entries=[OrganizationEntry(object_key="deal/report.pdf", suggested_folder="reports")]
        )
    )

    assert [a.new_path for a in result.actions] == ["_organized/reports/report-1.pdf"]
    assert store.get_object("_organized/reports/report.pdf") == b"old"


def test_failed_copy_leaves_original_and_continues() -> None:
    store = _FlakyStore({"a.pdf": b"a", "b.pdf": b"b"}, fail_copy={"a.pdf"})
    service = _service(store)

    result = _organize(service)

    assert not result.success
    assert set(result.failures) == {"a.pdf"}
    assert "a.pdf" in store
    assert [a.original_path for a in result.actions] == ["b.pdf"]
    assert len(_history(store)[0]["actions"]) == 1


def test_failed_delete_leaves_object_in_both_places() -> None:
    store = _FlakyStore({"a.pdf": b"a"}, fail_remove={"a.pdf"})
    service = _service(store)

    result = _organize(service)

    assert "a.pdf" in result.failures
    assert "a.pdf" in store
    assert "_organized/miscellaneous/a.pdf" in store
    # The copy succeeded, so revert can still find it
    assert [a.new_path for a in result.actions] == ["_organized/miscellaneous/a.pdf"]


def test_two_phase_mode_deletes_nothing_when_a_copy_fails() -> None:
    store = _FlakyStore({"a.pdf": b"a", "b.pdf": b"b"}, fail_copy={"b.pdf"})
    service = _service(store, **{"organization.apply_mode": "two_phase"})

    result = _organize(service)

    assert result.actions == []
    assert set(result.failures) == {"b.pdf"}
    assert store.keys() == ["a.pdf", "b.pdf"]
    assert any("no originals were deleted" in note for note in result.notes)


def test_partial_revert_reports_failures_and_drops_batch() -> None:
    store = _FlakyStore({"a.pdf": b"a", "b.pdf": b"b"})
    service = _service(store)
    _organize(service)

    store.fail_copy = {"_organized/miscellaneous/a.pdf"}
    revert = service.revert_last_organization()

    assert revert.status == "partial"
    assert not revert.success
    assert list(revert.failures) == ["_organized/miscellaneous/a.pdf"]
    assert [a.original_path for a in revert.restored] == ["b.pdf"]
    assert service.history() == []


def test_history_write_failure_is_reported_but_moves_stay() -> None:
    store = _FlakyStore({"a.pdf": b"a"})
    service = _service(store)

    original_put = store.put_object

    def _refuse_history(key: str, data: bytes, content_type: str = "application/octet-stream"):
        if key == HISTORY_KEY:
            raise StoreMutationError("history bucket is read-only")
        return original_put(key, data, content_type)

    store.put_object = _refuse_history  # type: ignore[method-assign]
    result = _organize(service)

    assert result.history_error is not None
    assert result.batch_id is None
    assert not result.success
    assert "_organized/miscellaneous/a.pdf" in store


def test_move_file_records_manual_move() -> None:
    store = MemoryObjectStore({"_organized/reports/a.pdf": b"a"})
    service = _service(store)

    result = service.move_file("_organized/reports/a.pdf", "Tax Documents")

    assert result.success
    assert "_organized/tax-documents/a.pdf" in store
    assert _history(store)[0]["actions"][0]["action"] == "manual-move"

    service.revert_last_organization()
    assert "_organized/reports/a.pdf" in store


def test_move_file_refuses_the_history_document() -> None:
    store = MemoryObjectStore({"a.pdf": b"a"})
    service = _service(store)
    first = _organize(service)

    result = service.move_file(HISTORY_KEY, "oops")

    assert not result.success
    assert list(result.failures) == [HISTORY_KEY]
    assert HISTORY_KEY in store
    assert not any(key.startswith("_organized/oops/") for key in store.keys())
    assert [batch.batch_id for batch in service.history()] == [first.batch_id]

    assert service.revert_last_organization().batch_id == first.batch_id
    assert "a.pdf" in store


def test_edited_suggestion_cannot_move_metadata() -> None:
    store = MemoryObjectStore({"a.pdf": b"a", HISTORY_KEY: b"[]"})
    service = _service(store)

    result = service.apply_organization(
        OrganizationSuggestion(
            entries=[
                OrganizationEntry(object_key=HISTORY_KEY, suggested_folder="oops"),
                OrganizationEntry(object_key="a.pdf", suggested_folder="reports"),
            ]
        )
    )

    assert set(result.failures) == {HISTORY_KEY}
    assert [a.original_path for a in result.actions] == ["a.pdf"]
    assert len(_history(store)) == 1


def test_overwrite_keeps_same_named_objects_of_one_batch() -> None:
    store = MemoryObjectStore({"x/report.pdf": b"X", "y/report.pdf": b"Y"})
    service = _service(store, **{"organization.conflict_resolution": "overwrite"})

    result = service.apply_organization(
        OrganizationSuggestion(
            entries=[
                OrganizationEntry(object_key="x/report.pdf", suggested_folder="r"),
                OrganizationEntry(object_key="y/report.pdf", suggested_folder="r"),
            ]
        )
    )

    assert result.success
    assert store.get_object("_organized/r/report.pdf") == b"X"
    assert store.get_object("_organized/r/report-1.pdf") == b"Y"

    service.revert_last_organization()

    assert store.get_object("x/report.pdf") == b"X"
    assert store.get_object("y/report.pdf") == b"Y"


def test_two_phase_rollback_keeps_objects_that_existed_before() -> None:
    store = _FlakyStore(
        {"_organized/r/a.pdf": b"OLD", "a.pdf": b"a", "b.pdf": b"b"}, fail_copy={"b.pdf"}
    )
    service = _service(
        store,
        **{"organization.apply_mode": "two_phase", "organization.conflict_resolution": "overwrite"},
    )

    result = service.apply_organization(
        OrganizationSuggestion(
            entries=[
                OrganizationEntry(object_key="a.pdf", suggested_folder="r"),
                OrganizationEntry(object_key="b.pdf", suggested_folder="r"),
            ]
        )
    )

    assert set(result.failures) == {"b.pdf"}
    assert result.actions == []
    assert store.get_object("_organized/r/a.pdf") == b"OLD"
    assert store.keys() == ["_organized/r/a.pdf", "a.pdf", "b.pdf"]


def test_move_file_to_current_folder_is_a_no_op() -> None:
    store = MemoryObjectStore({"_organized/reports/a.pdf": b"a"})
    service = _service(store)

    result = service.move_file("_organized/reports/a.pdf", "Reports")

    assert result.actions == []
    assert result.notes
    assert HISTORY_KEY not in store


def test_gateway_labels_flow_through_canonicalization(
    scripted_gateway: Callable[..., tuple[ClassifierGateway, Any]],
) -> None:
    gateway, _ = scripted_gateway(
        json.dumps({"Lease_Agreement.pdf": "tenant", "Tax_Form_1099.pdf": "1099"})
    )
    store = MemoryObjectStore({"Lease_Agreement.pdf": b"1", "Tax_Form_1099.pdf": b"2"})
    service = OrganizerService.from_config(_config(), store=store, gateway=gateway)

    suggestion = service.suggest_organization(service.list_unorganized())

    assert suggestion.distinct_folders == ["tenant-records", "tax-documents"]


def test_history_repository_uses_configured_key() -> None:
    store = MemoryObjectStore()
    service = _service(store, **{"store.metadata_prefix": "meta"})

    assert isinstance(service.history_repository, HistoryRepository)
    assert service.history_repository.key == "meta/organization_history.json"


@pytest.mark.parametrize("mode", ["sequential", "two_phase"])
def test_apply_modes_reach_the_same_final_state(mode: str) -> None:
    store = MemoryObjectStore({"Loan_Terms.pdf": b"1", "HOA_Rules.pdf": b"2"})
    service = _service(store, **{"organization.apply_mode": mode})

    result = _organize(service)

    assert result.success
    assert sorted(store.keys()) == [
        "_metadata/organization_history.json",
        "_organized/hoa-documents/HOA_Rules.pdf",
        "_organized/loan-documents/Loan_Terms.pdf",
    ]
