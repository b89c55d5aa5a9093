"""Extraction adapter: one call to the document-understanding service,
returning a Candidate Extraction Record or raising ExtractionFailure."""

import asyncio
import base64
import binascii
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from policy_intake.core.config import settings
from policy_intake.core.exceptions import APIClientError, ExtractionFailure
from policy_intake.prompts.intake_prompts import EXTRACTION_CONTRACT_VERSION, POLICY_EXTRACTION_PROMPT
from policy_intake.schemas.extraction import CandidateExtractionRecord, ExtractionResult
from policy_intake.schemas.intake import IntakeHints
from policy_intake.services.intake.ingestion_gate import AcceptedDocument
from policy_intake.utils.json_parser import parse_json_safely
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


def clamp_confidence(value: Any, default: int) -> int:
    """Coerce a reported confidence to an int in 0..100, or ``default``."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(str(value).strip().rstrip("%"))
    except ValueError:
        return default
    if number != number:  # NaN
        return default
    return int(round(min(100.0, max(0.0, number))))


class ExtractionAdapter:
    """Calls the LLM once with the versioned extraction contract.

    The call is not retried; a caller-visible retry is a fresh call to
    :meth:`extract`.
    """

    def __init__(
        self,
        llm_client: Any,
        timeout: Optional[float] = None,
        default_confidence: Optional[int] = None,
    ):
        """Initialize the adapter.

        Args:
            llm_client: Client exposing ``generate_content`` (UnifiedLLMClient)
            timeout: Seconds before the call is abandoned
            default_confidence: Confidence used when the model reports none
        """
        self.llm_client = llm_client
        self.timeout = settings.intake.extraction_timeout if timeout is None else timeout
        self.default_confidence = (
            settings.intake.default_confidence if default_confidence is None else default_confidence
        )

    def build_contents(
        self, document: AcceptedDocument, hints: IntakeHints
    ) -> List[Union[str, Dict[str, Any]]]:
        prompt = POLICY_EXTRACTION_PROMPT.format(
            insurer_id=hints.insurer_id or "null",
            policy_type=hints.policy_type or "null",
            contract_version=EXTRACTION_CONTRACT_VERSION,
        )
        if not document.is_binary:
            return [prompt, {"text": document.text}]

        try:
            data = base64.b64decode(document.base64, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ExtractionFailure(
                "Document content is not valid base64", reason="invalid_document", original_error=e
            )
        return [prompt, {"inline_data": {"mime_type": document.mime_type, "data": data}}]

    async def extract(self, document: AcceptedDocument, hints: IntakeHints) -> ExtractionResult:
        """Extract a candidate record from a gate-approved document.

        Raises:
            ExtractionFailure: On service error, timeout, or an unparseable
                response (reason ``service_error``, ``timeout`` or
                ``unparseable``)
        """
        contents = self.build_contents(document, hints)

        LOGGER.info(
            "Requesting document extraction",
            extra={
                "mime_type": document.mime_type,
                "contract_version": EXTRACTION_CONTRACT_VERSION,
                "insurer_id": hints.insurer_id,
                "policy_type": hints.policy_type,
            }
        )

        try:
            response_text = await asyncio.wait_for(
                self.llm_client.generate_content(
                    contents=contents,
                    generation_config={"response_mime_type": "application/json"},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            LOGGER.warning(f"Extraction timed out after {self.timeout}s")
            raise ExtractionFailure(
                f"Extraction timed out after {self.timeout} seconds", reason="timeout", original_error=e
            )
        except APIClientError as e:
            LOGGER.error(f"Extraction service error: {e}")
            raise ExtractionFailure(f"Extraction service error: {e}", original_error=e)

        return self.parse_response(response_text)

    def parse_response(self, response_text: Optional[str]) -> ExtractionResult:
        """Turn the raw model response into an ExtractionResult."""
        parsed = parse_json_safely(response_text or "")
        if not isinstance(parsed, dict):
            LOGGER.error(
                "Extraction response is not a JSON object",
                extra={"response_preview": (response_text or "")[:200]}
            )
            raise ExtractionFailure(
                "Extraction response could not be parsed as a policy record", reason="unparseable"
            )

        try:
            record = CandidateExtractionRecord.model_validate(parsed)
        except ValidationError as e:
            raise ExtractionFailure(
                "Extraction response does not match the policy record shape",
                reason="unparseable",
                original_error=e,
            )
        reported = record.confidence.overall if record.confidence else None
        confidence = clamp_confidence(reported, self.default_confidence)

        LOGGER.info(
            "Extraction completed",
            extra={
                "confidence": confidence,
                "coverages": len(record.coverages),
                "beneficiaries": len(record.beneficiaries),
                "drivers": len(record.drivers),
            }
        )
        return ExtractionResult(
            record=record,
            confidence=confidence,
            contract_version=EXTRACTION_CONTRACT_VERSION,
            raw=parsed,
        )
