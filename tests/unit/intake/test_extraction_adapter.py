"""Tests for the extraction adapter."""

import asyncio
import base64
import json

import pytest

from policy_intake.core.exceptions import APIClientError, ExtractionFailure
from policy_intake.prompts.intake_prompts import EXTRACTION_CONTRACT_VERSION
from policy_intake.schemas.intake import IntakeHints
from policy_intake.services.intake.extraction_adapter import ExtractionAdapter, clamp_confidence
from policy_intake.services.intake.ingestion_gate import AcceptedDocument

RESPONSE = {
    "policy": {"number": "POL-9", "type": "auto", "premium": 410},
    "insurer": {"id": "ethniki"},
    "beneficiaries": [{"name": "Eleni", "percentage": 100}],
    "confidence": {"overall": 72},
}


@pytest.fixture
def text_document():
    return AcceptedDocument(mime_type="text/plain", text="Policy POL-9, premium 410 EUR")


@pytest.fixture
def pdf_document():
    return AcceptedDocument(mime_type="application/pdf", base64=base64.b64encode(b"%PDF-1.7").decode())


@pytest.fixture
def adapter(mock_llm_client):
    return ExtractionAdapter(mock_llm_client, timeout=1.0, default_confidence=85)


class TestBuildContents:
    def test_text_document(self, adapter, text_document):
        contents = adapter.build_contents(text_document, IntakeHints(insurer_id="ethniki"))

        assert contents[1] == {"text": "Policy POL-9, premium 410 EUR"}
        assert "insurer id: ethniki" in contents[0]
        assert EXTRACTION_CONTRACT_VERSION in contents[0]

    def test_binary_document_is_decoded(self, adapter, pdf_document):
        contents = adapter.build_contents(pdf_document, IntakeHints())

        assert contents[1] == {"inline_data": {"mime_type": "application/pdf", "data": b"%PDF-1.7"}}


class TestExtract:
    @pytest.mark.asyncio
    async def test_successful_extraction(self, adapter, mock_llm_client, text_document):
        mock_llm_client.generate_content.return_value = json.dumps(RESPONSE)

        result = await adapter.extract(text_document, IntakeHints())

        assert result.record.policy.number == "POL-9"
        assert result.record.beneficiaries[0].name == "Eleni"
        assert result.confidence == 72
        assert result.contract_version == EXTRACTION_CONTRACT_VERSION
        assert result.raw == RESPONSE
        mock_llm_client.generate_content.assert_awaited_once()
        kwargs = mock_llm_client.generate_content.await_args.kwargs
        assert kwargs["generation_config"] == {"response_mime_type": "application/json"}

    @pytest.mark.asyncio
    async def test_timeout_raises_extraction_failure(self, mock_llm_client, text_document):
        async def never_answers(**kwargs):
            await asyncio.sleep(5)
            return "{}"

        mock_llm_client.generate_content.side_effect = never_answers
        adapter = ExtractionAdapter(mock_llm_client, timeout=0.05)

        with pytest.raises(ExtractionFailure) as exc_info:
            await adapter.extract(text_document, IntakeHints())

        assert exc_info.value.reason == "timeout"
        mock_llm_client.generate_content.assert_called_once()

    @pytest.mark.asyncio
    async def test_service_error_is_not_retried(self, adapter, mock_llm_client, text_document):
        mock_llm_client.generate_content.side_effect = APIClientError("503 from upstream")

        with pytest.raises(ExtractionFailure) as exc_info:
            await adapter.extract(text_document, IntakeHints())

        assert exc_info.value.reason == "service_error"
        assert isinstance(exc_info.value.original_error, APIClientError)
        assert mock_llm_client.generate_content.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_base64_fails_before_the_call(self, adapter, mock_llm_client):
        document = AcceptedDocument(mime_type="image/png", base64="not base64!")

        with pytest.raises(ExtractionFailure) as exc_info:
            await adapter.extract(document, IntakeHints())

        assert exc_info.value.reason == "invalid_document"
        mock_llm_client.generate_content.assert_not_called()


class TestParseResponse:
    def test_fenced_json_with_prose(self, adapter):
        text = "Here is the record:\n```json\n" + json.dumps(RESPONSE) + "\n```\nDone."

        assert adapter.parse_response(text).record.insurer.id == "ethniki"

    @pytest.mark.parametrize("text", ["", "I could not read the document.", "[1, 2, 3]", None])
    def test_unparseable_output(self, adapter, text):
        with pytest.raises(ExtractionFailure) as exc_info:
            adapter.parse_response(text)
        assert exc_info.value.reason == "unparseable"

    def test_missing_confidence_uses_default(self, adapter):
        result = adapter.parse_response(json.dumps({"policy": {"number": "X"}}))
        assert result.confidence == 85

    def test_reported_confidence_is_clamped(self, adapter):
        result = adapter.parse_response(json.dumps({"confidence": {"overall": 140}}))
        assert result.confidence == 100

    def test_malformed_groups_do_not_fail_the_record(self, adapter):
        result = adapter.parse_response(json.dumps({"policy": "POL-1", "coverages": "all", "drivers": [1, {"name": "A"}]}))

        assert result.record.policy is None
        assert result.record.coverages == []
        assert len(result.record.drivers) == 1


@pytest.mark.parametrize(
    "value,expected",
    [(72, 72), ("64%", 64), (-3, 0), (101.6, 100), (88.4, 88), ("high", 85), (None, 85), (True, 85)],
)
def test_clamp_confidence(value, expected):
    assert clamp_confidence(value, 85) == expected
