"""Tests for the plain-language analysis service."""

import asyncio
import json

import pytest

from policy_intake.core.exceptions import AnalysisFailure, APIClientError
from policy_intake.services.intake.analysis_service import AnalysisService


@pytest.fixture
def service(mock_llm_client):
    return AnalysisService(mock_llm_client, timeout=1.0, max_coverages=2, default_locale="el")


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_parses_camel_case_response(self, service, mock_llm_client, valid_draft):
        mock_llm_client.generate_content.return_value = json.dumps(
            {
                "summary": "Comprehensive car insurance.",
                "keyCoverages": ["Third party", "Theft", "Fire", "Glass"],
                "keyNumbers": ["Premium 500 EUR"],
                "thingsToKnow": "  Deductible of 300 EUR applies.  ",
                "benefits": ["Roadside assistance", 42],
            }
        )

        result = await service.analyze(valid_draft)

        assert result.summary == "Comprehensive car insurance."
        assert result.key_coverages == ["Third party", "Theft"]
        assert result.things_to_know == "Deductible of 300 EUR applies."
        assert result.benefits == ["Roadside assistance"]

    @pytest.mark.asyncio
    async def test_prompt_carries_locale_and_draft(self, service, mock_llm_client, valid_draft):
        mock_llm_client.generate_content.return_value = '{"summary": "ok"}'

        await service.analyze(valid_draft, locale="en")

        prompt = mock_llm_client.generate_content.await_args.kwargs["contents"]
        assert 'locale "en"' in prompt
        assert "POL-2024-001" in prompt

    @pytest.mark.asyncio
    async def test_snake_case_keys_are_accepted(self, service, mock_llm_client, valid_draft):
        mock_llm_client.generate_content.return_value = '{"key_numbers": ["25,000 EUR cover"]}'

        result = await service.analyze(valid_draft)

        assert result.key_numbers == ["25,000 EUR cover"]

    @pytest.mark.asyncio
    async def test_empty_analysis_is_a_failure(self, service, mock_llm_client, valid_draft):
        mock_llm_client.generate_content.return_value = '{"summary": "  ", "keyCoverages": []}'

        with pytest.raises(AnalysisFailure):
            await service.analyze(valid_draft)

    @pytest.mark.asyncio
    async def test_unparseable_response(self, service, mock_llm_client, valid_draft):
        mock_llm_client.generate_content.return_value = "Sorry, no analysis today."

        with pytest.raises(AnalysisFailure):
            await service.analyze(valid_draft)

    @pytest.mark.asyncio
    async def test_service_error(self, service, mock_llm_client, valid_draft):
        mock_llm_client.generate_content.side_effect = APIClientError("quota exceeded")

        with pytest.raises(AnalysisFailure) as exc_info:
            await service.analyze(valid_draft)
        assert isinstance(exc_info.value.original_error, APIClientError)

    @pytest.mark.asyncio
    async def test_timeout(self, mock_llm_client, valid_draft):
        async def slow(**kwargs):
            await asyncio.sleep(5)

        mock_llm_client.generate_content.side_effect = slow
        service = AnalysisService(mock_llm_client, timeout=0.05)

        with pytest.raises(AnalysisFailure, match="timed out"):
            await service.analyze(valid_draft)
