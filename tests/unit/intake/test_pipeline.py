"""End-to-end tests of the intake pipeline over in-memory collaborators."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import pytest

from policy_intake.core.exceptions import (
    ConfigurationError,
    ExtractionFailure,
    UnsupportedMediaType,
)
from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.draft import BeneficiaryInput, ChildEntities
from policy_intake.schemas.intake import DocumentPayload, IntakeHints
from policy_intake.services.intake.analysis_service import AnalysisService
from policy_intake.services.intake.extraction_adapter import ExtractionAdapter
from policy_intake.services.intake.lookup_service import PolicyLookupService
from policy_intake.services.intake.pipeline import IntakePipeline
from policy_intake.services.intake.reconciliation import ReconciliationOrchestrator

EXTRACTED = {
    "policy": {
        "number": "POL-2024-001",
        "type": "auto",
        "startDate": "01/01/2024",
        "endDate": "31/12/2024",
        "premium": "500,00",
        "premiumFrequency": "annual",
    },
    "policyholder": {"name": "Maria Papadopoulou", "afm": "123 456 789"},
    "beneficiaries": [{"name": "Eleni", "percentage": 100}],
    "confidence": {"overall": 55},
}


@pytest.fixture
def directory():
    directory = Mock()
    directory.find = AsyncMock(return_value=None)
    return directory


@pytest.fixture
def pipeline(mock_llm_client, memory_store, directory):
    return IntakePipeline(
        extractor=ExtractionAdapter(mock_llm_client, timeout=1.0, default_confidence=85),
        analyzer=AnalysisService(mock_llm_client, timeout=1.0),
        orchestrator=ReconciliationOrchestrator(memory_store),
        lookup=PolicyLookupService(directory),
        review_threshold=60,
    )


def _text_payload(text="POLICY POL-2024-001"):
    return DocumentPayload(text=text)


class TestExtractDocument:
    @pytest.mark.asyncio
    async def test_valid_document(self, pipeline, mock_llm_client):
        mock_llm_client.generate_content.return_value = json.dumps(EXTRACTED)

        outcome = await pipeline.extract_document(_text_payload(), hints=IntakeHints(insurer_id="ethniki"))

        state = outcome.state
        assert state.kind == "valid"
        assert state.added_method == "document"
        assert state.confidence == 55
        assert state.review_recommended is True
        assert state.draft.insurer_id == "ethniki"
        assert state.draft.start_date == "2024-01-01"
        assert state.draft.holder_afm == "123456789"
        assert state.children.beneficiaries[0].full_name == "Eleni"
        assert state.document_parsed_data == EXTRACTED
        assert outcome.extracted_fields > 0

    @pytest.mark.asyncio
    async def test_document_with_gaps_needs_correction(self, pipeline, mock_llm_client):
        payload = dict(EXTRACTED, policy={"number": "POL-1", "startDate": "2024-01-01"})
        mock_llm_client.generate_content.return_value = json.dumps(payload)

        outcome = await pipeline.extract_document(_text_payload())

        assert outcome.state.kind == "needs_correction"
        assert set(outcome.state.errors) == {"endDate", "premium"}

    @pytest.mark.asyncio
    async def test_timeout_produces_no_draft_and_writes_nothing(self, pipeline, mock_llm_client, memory_store):
        async def slow(**kwargs):
            await asyncio.sleep(5)

        mock_llm_client.generate_content.side_effect = slow
        pipeline.extractor.timeout = 0.05

        with pytest.raises(ExtractionFailure) as exc_info:
            await pipeline.extract_document(_text_payload(), hints=IntakeHints(insurer_id="ethniki"))

        assert exc_info.value.reason == "timeout"
        assert memory_store.calls == []

    @pytest.mark.asyncio
    async def test_gate_rejects_before_calling_the_service(self, pipeline, mock_llm_client):
        with pytest.raises(UnsupportedMediaType):
            await pipeline.extract_document(DocumentPayload(base64="AAAA"), mime_type="application/zip")

        mock_llm_client.generate_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_extractor_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            await IntakePipeline().extract_document(_text_payload())


class TestSearchAndManual:
    @pytest.mark.asyncio
    async def test_search_hit(self, pipeline, directory):
        directory.find.return_value = {
            "startDate": "2024-01-01",
            "endDate": "2025-01-01",
            "premium": 220,
            "policyType": "health",
        }

        draft, state = await pipeline.search_policy("ethniki", "H-1")

        assert draft.policy_number == "H-1"
        assert state.kind == "valid"
        assert state.added_method == "search"

    @pytest.mark.asyncio
    async def test_search_miss(self, pipeline):
        assert await pipeline.search_policy("ethniki", "H-404") is None

    def test_manual_submission(self, pipeline, valid_draft):
        children = ChildEntities(beneficiaries=[BeneficiaryInput(full_name="Eleni", percentage=100)])

        state = pipeline.submit_manual(valid_draft, children=children)

        assert state.kind == "valid"
        assert state.added_method == "manual"
        assert state.review_recommended is False
        assert state.children == children

    def test_manual_submission_goes_through_the_form(self, pipeline, valid_draft):
        entered = valid_draft.model_copy(update={"insurer_id": None, "holder_afm": "123 456 789"})

        state = pipeline.submit_manual(entered, hints=IntakeHints(insurer_id="ethniki", policy_type="auto"))

        assert state.kind == "valid"
        assert state.draft.insurer_id == "ethniki"
        assert state.draft.holder_afm == "123456789"
        assert state.draft.premium == valid_draft.premium

    def test_resubmit_applies_edits(self, pipeline, valid_draft):
        broken = valid_draft.model_copy(update={"premium": None})

        state = pipeline.resubmit(broken, edits={"premium": "510"}, confidence=90, added_method="document")

        assert state.kind == "valid"
        assert str(state.draft.premium) == "510"
        assert state.added_method == "document"

    def test_resubmit_without_edits_reports_errors(self, pipeline, valid_draft):
        state = pipeline.resubmit(valid_draft.model_copy(update={"holder_afm": "12AB"}))

        assert state.kind == "needs_correction"
        assert state.errors == {"holderAfm": "invalid format"}


class TestConfirm:
    @pytest.mark.asyncio
    async def test_analysis_is_attached(self, pipeline, mock_llm_client, valid_draft):
        mock_llm_client.generate_content.return_value = '{"summary": "Car cover with 300 EUR deductible"}'

        outcome = await pipeline.confirm(valid_draft, locale="en")

        assert outcome.analysis_warning is None
        assert outcome.state.analysis.summary == "Car cover with 300 EUR deductible"

    @pytest.mark.asyncio
    async def test_analysis_failure_does_not_block(self, pipeline, mock_llm_client, valid_draft):
        mock_llm_client.generate_content.return_value = "not json"

        outcome = await pipeline.confirm(valid_draft)

        assert outcome.state.kind == "valid"
        assert outcome.state.analysis is None
        assert outcome.analysis_warning

    @pytest.mark.asyncio
    async def test_skip_analysis(self, pipeline, mock_llm_client, valid_draft):
        outcome = await pipeline.confirm(valid_draft, skip_analysis=True)

        assert outcome.state.analysis_skipped is True
        mock_llm_client.generate_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_analyzer_is_a_warning(self, memory_store, valid_draft):
        outcome = await IntakePipeline(orchestrator=ReconciliationOrchestrator(memory_store)).confirm(valid_draft)

        assert outcome.state.kind == "valid"
        assert outcome.analysis_warning == "Analysis service is not configured"

    @pytest.mark.asyncio
    async def test_invalid_draft_is_sent_back(self, pipeline, mock_llm_client, valid_draft):
        outcome = await pipeline.confirm(valid_draft.model_copy(update={"policy_number": None}))

        assert outcome.state.kind == "needs_correction"
        mock_llm_client.generate_content.assert_not_called()


@pytest.mark.asyncio
async def test_commit_persists_through_the_orchestrator(pipeline, memory_store, valid_draft):
    analysis = AnalysisResult(summary="ok")

    result = await pipeline.commit(valid_draft, analysis=analysis, added_method="manual", user_id="user-1")

    stored = memory_store.policies[result.policy.id]
    assert stored.user_id == "user-1"
    assert stored.analysis == analysis
