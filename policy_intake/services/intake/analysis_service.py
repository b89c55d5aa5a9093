"""Plain-language analysis of a verified draft (advisory)."""

import asyncio
import json
from typing import Any, Optional

from pydantic import ValidationError

from policy_intake.core.config import settings
from policy_intake.core.exceptions import AnalysisFailure, APIClientError
from policy_intake.prompts.intake_prompts import POLICY_ANALYSIS_PROMPT
from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.draft import PolicyDraft
from policy_intake.utils.json_parser import parse_json_safely
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AnalysisService:
    """Second LLM call summarising a verified draft for its owner.

    Failures raise :class:`AnalysisFailure`; callers decide whether to
    proceed without a summary.
    """

    def __init__(
        self,
        llm_client: Any,
        timeout: Optional[float] = None,
        max_coverages: Optional[int] = None,
        default_locale: Optional[str] = None,
    ):
        self.llm_client = llm_client
        self.timeout = settings.intake.analysis_timeout if timeout is None else timeout
        self.max_coverages = (
            settings.intake.analysis_max_coverages if max_coverages is None else max_coverages
        )
        self.default_locale = default_locale or settings.intake.default_locale

    async def analyze(self, draft: PolicyDraft, locale: Optional[str] = None) -> AnalysisResult:
        """Summarise a verified draft.

        Args:
            draft: Draft that passed validation
            locale: Output language; defaults to the configured locale

        Returns:
            AnalysisResult with at least one non-empty sub-field

        Raises:
            AnalysisFailure: On service error, timeout, unparseable output or
                an entirely empty analysis
        """
        locale = locale or self.default_locale
        policy_json = json.dumps(
            draft.model_dump(mode="json", by_alias=True, exclude_none=True),
            ensure_ascii=False,
            indent=2,
        )
        prompt = POLICY_ANALYSIS_PROMPT.format(
            locale=locale,
            max_coverages=self.max_coverages,
            policy_json=policy_json,
        )

        try:
            response_text = await asyncio.wait_for(
                self.llm_client.generate_content(
                    contents=prompt,
                    generation_config={"response_mime_type": "application/json"},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            LOGGER.warning(f"Policy analysis timed out after {self.timeout}s")
            raise AnalysisFailure(f"Analysis timed out after {self.timeout} seconds", original_error=e)
        except APIClientError as e:
            LOGGER.error(f"Analysis service error: {e}")
            raise AnalysisFailure(f"Analysis service error: {e}", original_error=e)

        parsed = parse_json_safely(response_text or "")
        if not isinstance(parsed, dict):
            raise AnalysisFailure("Analysis response could not be parsed")

        try:
            result = AnalysisResult.model_validate(_coerce_analysis(parsed))
        except ValidationError as e:
            raise AnalysisFailure("Analysis response has an unexpected shape", original_error=e)

        if result.is_empty():
            raise AnalysisFailure("Analysis response contained no usable fields")

        result = result.model_copy(update={"key_coverages": result.key_coverages[: self.max_coverages]})
        LOGGER.info(
            "Policy analysis completed",
            extra={"locale": locale, "key_coverages": len(result.key_coverages)}
        )
        return result


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _texts(value: Any) -> list:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _coerce_analysis(payload: dict) -> dict:
    """Keep only well-formed analysis sub-fields."""
    return {
        "summary": _text(payload.get("summary")),
        "key_coverages": _texts(payload.get("keyCoverages", payload.get("key_coverages"))),
        "key_numbers": _texts(payload.get("keyNumbers", payload.get("key_numbers"))),
        "things_to_know": _text(payload.get("thingsToKnow", payload.get("things_to_know"))),
        "benefits": _texts(payload.get("benefits")),
    }
