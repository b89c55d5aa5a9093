"""Intake pipeline facade.

Wires gate, extractor, normalizer, validator, state machine, analysis and
reconciliation together. It holds no per-intake state: every call takes the
draft it works on and returns a new wizard state.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import Field

from policy_intake.core.config import settings
from policy_intake.core.exceptions import AnalysisFailure, ConfigurationError
from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.base import FrozenCamelModel
from policy_intake.schemas.draft import ChildEntities, PolicyDraft
from policy_intake.schemas.intake import DocumentPayload, IntakeHints
from policy_intake.schemas.policy import AddedMethod, ReconciliationResult
from policy_intake.services.intake import correction_loop as loop
from policy_intake.services.intake.analysis_service import AnalysisService
from policy_intake.services.intake.extraction_adapter import ExtractionAdapter
from policy_intake.services.intake.ingestion_gate import check_payload
from policy_intake.services.intake.lookup_service import PolicyLookupService
from policy_intake.services.intake.normalizer import normalize, normalize_children
from policy_intake.services.intake.reconciliation import ReconciliationOrchestrator
from policy_intake.services.intake.validator import validate_draft
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ConfirmOutcome(FrozenCamelModel):
    state: loop.WizardState
    analysis_warning: Optional[str] = None


class ExtractionOutcome(FrozenCamelModel):
    state: loop.WizardState
    contract_version: str
    extracted_fields: int = Field(default=0, description="Draft fields populated by extraction")


class IntakePipeline:
    """Entry points for one user-initiated intake."""

    def __init__(
        self,
        extractor: Optional[ExtractionAdapter] = None,
        analyzer: Optional[AnalysisService] = None,
        orchestrator: Optional[ReconciliationOrchestrator] = None,
        lookup: Optional[PolicyLookupService] = None,
        review_threshold: Optional[int] = None,
    ):
        self.extractor = extractor
        self.analyzer = analyzer
        self.orchestrator = orchestrator
        self.lookup = lookup
        self.review_threshold = (
            settings.intake.confidence_review_threshold if review_threshold is None else review_threshold
        )

    def _require(self, component: Any, name: str) -> Any:
        if component is None:
            raise ConfigurationError(f"Intake pipeline has no {name} configured")
        return component

    async def extract_document(
        self,
        payload: DocumentPayload,
        mime_type: Optional[str] = None,
        hints: Optional[IntakeHints] = None,
    ) -> ExtractionOutcome:
        """Gate, extract, normalize and validate an uploaded document.

        Raises:
            IngestionError: If the gate rejects the payload
            ExtractionFailure: If extraction fails; no draft is produced
        """
        hints = hints or IntakeHints()
        document = check_payload(payload, mime_type=mime_type)
        result = await self._require(self.extractor, "extractor").extract(document, hints)

        draft = normalize(
            result.record,
            defaults=PolicyDraft(insurer_id=hints.insurer_id, policy_type=hints.policy_type),
        )
        state = loop.transition(
            loop.InputState(hints=hints),
            loop.DraftExtracted(
                draft=draft,
                children=normalize_children(result.record),
                confidence=result.confidence,
                document_parsed_data=result.raw,
            ),
        )
        state = loop.transition(state, loop.Resubmitted(), self.review_threshold)

        populated = sum(1 for value in draft.flat_fields().values() if value is not None)
        LOGGER.info(
            "Document intake validated",
            extra={"state": state.kind, "confidence": result.confidence, "fields": populated}
        )
        return ExtractionOutcome(state=state, contract_version=result.contract_version, extracted_fields=populated)

    async def search_policy(
        self,
        insurer_id: str,
        policy_number: str,
        hints: Optional[IntakeHints] = None,
    ) -> Optional[Tuple[PolicyDraft, Any]]:
        """Search entry: returns (draft, validated state) or None when not found."""
        draft = await self._require(self.lookup, "lookup service").search(insurer_id, policy_number)
        if draft is None:
            return None
        hints = hints or IntakeHints(insurer_id=insurer_id)
        state = loop.transition(loop.InputState(hints=hints), loop.SearchMatched(draft=draft))
        state = loop.transition(state, loop.Resubmitted(), self.review_threshold)
        return draft, state

    def submit_manual(
        self,
        draft: PolicyDraft,
        hints: Optional[IntakeHints] = None,
        children: Optional[ChildEntities] = None,
    ):
        """Manual entry: the draft is filled through the form steps, starting
        from the caller's hints, and validated only now, at submission."""
        hints = hints or IntakeHints()
        entered = draft.model_dump(exclude_none=True)

        form = loop.ManualEntryForm.start(hints)
        while True:
            form = form.fill(entered)
            if form.is_last_step:
                break
            form = form.next()

        return loop.transition(loop.InputState(hints=hints), form.submit(children))

    def resubmit(
        self,
        draft: PolicyDraft,
        edits: Optional[Mapping[str, Any]] = None,
        confidence: Optional[int] = None,
        added_method: AddedMethod = "manual",
        children: Optional[ChildEntities] = None,
    ):
        """Apply user edits to a draft and run authoritative validation."""
        state = loop.NeedsCorrectionState(
            draft=draft,
            errors=validate_draft(draft),
            confidence=confidence,
            added_method=added_method,
            children=children or ChildEntities(),
        )
        for field, value in (edits or {}).items():
            state = loop.transition(state, loop.FieldEdited(field=field, value=value))
        return loop.transition(state, loop.Resubmitted(), self.review_threshold)

    async def confirm(
        self,
        draft: PolicyDraft,
        skip_analysis: bool = False,
        locale: Optional[str] = None,
        confidence: Optional[int] = None,
        added_method: AddedMethod = "manual",
    ) -> ConfirmOutcome:
        """Confirm a draft, attaching a plain-language analysis when possible.

        An invalid draft comes back as ``needs_correction``. Analysis failure
        is reported as a warning and never blocks the commit.
        """
        state = loop.evaluate(
            draft,
            {"confidence": confidence, "added_method": added_method},
            self.review_threshold,
        )
        if not isinstance(state, loop.ValidState):
            return ConfirmOutcome(state=state)

        if skip_analysis:
            return ConfirmOutcome(state=loop.transition(state, loop.AnalysisSkipped()))

        if self.analyzer is None:
            return ConfirmOutcome(state=state, analysis_warning="Analysis service is not configured")

        try:
            analysis: AnalysisResult = await self.analyzer.analyze(state.draft, locale=locale)
        except AnalysisFailure as e:
            LOGGER.warning(f"Analysis unavailable, continuing without summary: {e}")
            return ConfirmOutcome(state=state, analysis_warning=str(e))

        return ConfirmOutcome(state=loop.transition(state, loop.AnalysisAttached(analysis=analysis)))

    async def commit(
        self,
        draft: PolicyDraft,
        children: Optional[ChildEntities] = None,
        analysis: Optional[AnalysisResult] = None,
        added_method: AddedMethod = "manual",
        document_parsed_data: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ReconciliationResult:
        """Commit a verified draft; see :class:`ReconciliationOrchestrator`."""
        return await self._require(self.orchestrator, "orchestrator").commit(
            draft,
            children=children,
            analysis=analysis,
            added_method=added_method,
            document_parsed_data=document_parsed_data,
            user_id=user_id,
        )
