"""Tests for committing a verified draft and its child records."""

import logging
from decimal import Decimal

import pytest

from policy_intake.core.exceptions import DraftValidationError, PersistenceError
from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.draft import (
    BeneficiaryInput,
    ChildEntities,
    CoverageInput,
    DriverInput,
    VehicleDetails,
)
from policy_intake.services.intake import reconciliation
from policy_intake.services.intake.reconciliation import ReconciliationOrchestrator, child_problem


@pytest.fixture
def children():
    return ChildEntities(
        coverages=[
            CoverageInput(coverage_type="liability", coverage_name="Third party", limit_amount=Decimal("1000000")),
            CoverageInput(coverage_type="theft", coverage_name="Theft"),
        ],
        beneficiaries=[
            BeneficiaryInput(full_name="Eleni", percentage=Decimal("50")),
            BeneficiaryInput(full_name=None, percentage=Decimal("25")),
            BeneficiaryInput(full_name="Kostas", percentage=Decimal("25")),
        ],
    )


def _kinds(store):
    return [kind for kind, _ in store.calls]


class TestCommit:
    @pytest.mark.asyncio
    async def test_partial_persistence_reports_skipped_child(self, memory_store, valid_draft, children):
        orchestrator = ReconciliationOrchestrator(memory_store, parallel_child_writes=False)

        result = await orchestrator.commit(valid_draft, children=children)

        assert result.created["beneficiaries"] == 2
        assert result.created["coverages"] == 2
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.kind == "beneficiary"
        assert warning.index == 1
        assert "full_name" in warning.reason
        assert [b.full_name for b in result.policy.beneficiaries] == ["Eleni", "Kostas"]
        assert result.policy.id in memory_store.policies

    @pytest.mark.asyncio
    async def test_parent_is_written_before_children(self, memory_store, valid_draft, children):
        await ReconciliationOrchestrator(memory_store).commit(valid_draft, children=children)

        kinds = _kinds(memory_store)
        assert kinds[0] == "policy"
        assert kinds.count("policy") == 1
        assert kinds.count("beneficiary") == 2

    @pytest.mark.asyncio
    async def test_parent_failure_writes_no_children(self, store_factory, valid_draft, children):
        store = store_factory(fail_parent=True)

        with pytest.raises(PersistenceError) as exc_info:
            await ReconciliationOrchestrator(store).commit(valid_draft, children=children)

        assert _kinds(store) == ["policy"]
        assert isinstance(exc_info.value.original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_invalid_draft_writes_nothing(self, memory_store, valid_draft, children):
        draft = valid_draft.model_copy(update={"premium": None})

        with pytest.raises(DraftValidationError) as exc_info:
            await ReconciliationOrchestrator(memory_store).commit(draft, children=children)

        assert exc_info.value.errors == {"premium": "required"}
        assert memory_store.calls == []

    @pytest.mark.asyncio
    async def test_child_write_failure_becomes_warning(self, store_factory, valid_draft, children):
        store = store_factory(fail_children={("coverage", 0)})

        result = await ReconciliationOrchestrator(store).commit(valid_draft, children=children)

        assert result.created["coverages"] == 1
        assert [(w.kind, w.index) for w in result.warnings] == [("coverage", 0), ("beneficiary", 1)]
        assert "coverage insert failed" in result.warnings[0].reason
        assert [c.coverage_name for c in result.policy.coverages] == ["Theft"]

    @pytest.mark.asyncio
    async def test_round_trip_of_flat_fields(self, memory_store, valid_draft):
        analysis = AnalysisResult(summary="Car cover")

        result = await ReconciliationOrchestrator(memory_store).commit(
            valid_draft, analysis=analysis, added_method="document", document_parsed_data={"policy": {}}
        )
        stored = await memory_store.get_policy(result.policy.id)

        assert stored.to_draft() == valid_draft
        assert stored.added_method == "document"
        assert stored.analysis == analysis
        assert stored.document_parsed_data == {"policy": {}}
        assert sum(result.created.values()) == 0
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_completion_is_logged_with_created_counts(
        self, memory_store, valid_draft, children, caplog, monkeypatch
    ):
        monkeypatch.setattr(reconciliation.LOGGER, "propagate", True)

        with caplog.at_level(logging.INFO, logger=reconciliation.LOGGER.name):
            result = await ReconciliationOrchestrator(memory_store).commit(valid_draft, children=children)

        record = next(r for r in caplog.records if r.getMessage() == "Reconciliation completed")
        assert record.created_counts == result.created
        assert record.warnings == 1

    @pytest.mark.asyncio
    async def test_draft_and_children_are_normalized_before_storage(self, memory_store, valid_draft):
        draft = valid_draft.model_copy(
            update={
                "holder_afm": "123 456 789",
                "start_date": "2024-01-01T00:00:00Z",
                "premium": Decimal("500.005"),
            }
        )
        children = ChildEntities(
            beneficiaries=[BeneficiaryInput(full_name="Eleni", afm="987 654 321", percentage=Decimal("33.335"))]
        )

        result = await ReconciliationOrchestrator(memory_store).commit(draft, children=children)

        stored_draft = memory_store.calls[0][1]
        assert stored_draft.holder_afm == "123456789"
        assert stored_draft.start_date == "2024-01-01"
        assert stored_draft.premium == Decimal("500.01")
        assert result.policy.holder_afm == "123456789"
        assert result.policy.beneficiaries[0].afm == "987654321"
        assert result.policy.beneficiaries[0].percentage == Decimal("33.34")

    @pytest.mark.asyncio
    async def test_vehicle_falls_back_to_draft_block(self, memory_store, valid_draft):
        vehicle = VehicleDetails(make="Toyota", model="Yaris", year=2019, license_plate="IKA-1234")
        draft = valid_draft.model_copy(update={"vehicle": vehicle})

        result = await ReconciliationOrchestrator(memory_store).commit(draft)

        assert result.created["vehicles"] == 1
        assert result.policy.vehicles[0].license_plate == "IKA-1234"

    @pytest.mark.asyncio
    async def test_incomplete_vehicle_is_skipped(self, memory_store, valid_draft):
        children = ChildEntities(vehicle=VehicleDetails(make="Toyota"))

        result = await ReconciliationOrchestrator(memory_store).commit(valid_draft, children=children)

        assert result.created["vehicles"] == 0
        assert result.warnings[0].kind == "vehicle"
        assert "license_plate" in result.warnings[0].reason
        assert "vehicle" not in _kinds(memory_store)

    @pytest.mark.asyncio
    async def test_parallel_writes_give_the_same_outcome(self, store_factory, valid_draft, children):
        children = children.model_copy(
            update={"drivers": [DriverInput(full_name="Nikos", date_of_birth="1980-05-05", license_number="AB123")]}
        )
        store = store_factory(fail_children={("beneficiary", 1)})

        result = await ReconciliationOrchestrator(store, parallel_child_writes=True).commit(
            valid_draft, children=children
        )

        assert result.created == {
            "coverages": 2,
            "beneficiaries": 1,
            "drivers": 1,
            "vehicles": 0,
            "properties": 0,
        }
        assert [(w.kind, w.index) for w in result.warnings] == [("beneficiary", 1), ("beneficiary", 2)]


class TestChildProblem:
    def test_complete_child(self):
        assert child_problem("beneficiary", BeneficiaryInput(full_name="A", percentage=Decimal("100"))) is None

    def test_blank_required_field(self):
        problem = child_problem("coverage", CoverageInput(coverage_type="  ", coverage_name="Fire"))
        assert problem == "missing required field(s): coverage_type"

    def test_percentage_out_of_range(self):
        problem = child_problem("beneficiary", BeneficiaryInput(full_name="A", percentage=Decimal("150")))
        assert problem == "percentage must be between 0 and 100"
