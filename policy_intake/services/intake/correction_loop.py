"""Intake wizard state machine.

States are immutable; :func:`transition` returns a new state for every
accepted event and raises :class:`InvalidTransitionError` otherwise.

    input --DraftExtracted/SearchMatched--> extracted
    input --ManualSubmitted--> valid | needs_correction
    extracted --Resubmitted--> valid | needs_correction
    needs_correction --FieldEdited--> corrected
    corrected --FieldEdited--> corrected
    corrected/needs_correction --Resubmitted--> valid | needs_correction
    valid --AnalysisAttached/AnalysisSkipped--> valid
    valid --FieldEdited--> corrected

Only ``Resubmitted`` runs the validator, so a draft never leaves
``needs_correction`` on an optimistic edit alone.
"""

from typing import Annotated, Any, ClassVar, Dict, FrozenSet, Literal, Mapping, Optional, Tuple, Union

from pydantic import Field
from pydantic.alias_generators import to_camel

from policy_intake.core.exceptions import InvalidTransitionError
from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.base import FrozenCamelModel
from policy_intake.schemas.draft import ChildEntities, PolicyDraft
from policy_intake.schemas.intake import IntakeHints
from policy_intake.schemas.policy import AddedMethod
from policy_intake.services.intake.normalizer import apply_edits, merge_partial, normalize_draft
from policy_intake.services.intake.validator import validate_draft


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

class InputState(FrozenCamelModel):
    kind: Literal["input"] = "input"
    hints: IntakeHints = Field(default_factory=IntakeHints)


class _DraftState(FrozenCamelModel):
    draft: PolicyDraft
    children: ChildEntities = Field(default_factory=ChildEntities)
    hints: IntakeHints = Field(default_factory=IntakeHints)
    added_method: AddedMethod = "manual"
    confidence: Optional[int] = Field(default=None, ge=0, le=100)
    document_parsed_data: Optional[Dict[str, Any]] = None


class ExtractedState(_DraftState):
    kind: Literal["extracted"] = "extracted"


class NeedsCorrectionState(_DraftState):
    kind: Literal["needs_correction"] = "needs_correction"
    errors: Dict[str, str]


class CorrectedState(_DraftState):
    kind: Literal["corrected"] = "corrected"
    errors: Dict[str, str] = Field(default_factory=dict, description="Errors not yet cleared by an edit")
    edited_fields: Tuple[str, ...] = ()


class ValidState(_DraftState):
    kind: Literal["valid"] = "valid"
    review_recommended: bool = False
    analysis: Optional[AnalysisResult] = None
    analysis_skipped: bool = False


WizardState = Annotated[
    Union[InputState, ExtractedState, NeedsCorrectionState, CorrectedState, ValidState],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

class DraftExtracted(FrozenCamelModel):
    """The extractor produced a normalized draft."""
    draft: PolicyDraft
    children: ChildEntities = Field(default_factory=ChildEntities)
    confidence: Optional[int] = Field(default=None, ge=0, le=100)
    document_parsed_data: Optional[Dict[str, Any]] = None


class SearchMatched(FrozenCamelModel):
    """Identifier search found a published policy."""
    draft: PolicyDraft


class ManualSubmitted(FrozenCamelModel):
    """The manual entry form was submitted."""
    draft: PolicyDraft
    children: ChildEntities = Field(default_factory=ChildEntities)


class FieldEdited(FrozenCamelModel):
    """User changed one field (``vehicle.make`` style for nested fields)."""
    field: str
    value: Any = None


class Resubmitted(FrozenCamelModel):
    """User asked for (re)validation, optionally with a whole new draft."""
    draft: Optional[PolicyDraft] = None


class AnalysisAttached(FrozenCamelModel):
    analysis: AnalysisResult


class AnalysisSkipped(FrozenCamelModel):
    pass


Event = Union[
    DraftExtracted,
    SearchMatched,
    ManualSubmitted,
    FieldEdited,
    Resubmitted,
    AnalysisAttached,
    AnalysisSkipped,
]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def _carry(state: _DraftState) -> Dict[str, Any]:
    return {
        "children": state.children,
        "hints": state.hints,
        "added_method": state.added_method,
        "confidence": state.confidence,
        "document_parsed_data": state.document_parsed_data,
    }


def _with_hints(draft: PolicyDraft, hints: IntakeHints) -> PolicyDraft:
    """Fill insurer id / policy type from hints where the draft is silent."""
    return merge_partial(
        PolicyDraft(insurer_id=hints.insurer_id, policy_type=hints.policy_type),
        draft,
    )


def review_recommended(confidence: Optional[int], threshold: Optional[int]) -> bool:
    if threshold is None or confidence is None:
        return False
    return confidence < threshold


def evaluate(draft: PolicyDraft, carry: Dict[str, Any], review_threshold: Optional[int] = None):
    """Validate ``draft`` and route it to ``valid`` or ``needs_correction``."""
    errors = validate_draft(draft)
    if errors:
        return NeedsCorrectionState(draft=draft, errors=errors, **carry)
    return ValidState(
        draft=draft,
        review_recommended=review_recommended(carry.get("confidence"), review_threshold),
        **carry,
    )


def _error_key(field: str) -> str:
    """Error-map key for an edited field (error keys are camelCase)."""
    return to_camel(field) if "_" in field else field


def _edit(state: _DraftState, event: FieldEdited) -> CorrectedState:
    draft = apply_edits(state.draft, {event.field: event.value})
    remaining = dict(getattr(state, "errors", {}) or {})
    remaining.pop(_error_key(event.field), None)
    edited = tuple(getattr(state, "edited_fields", ()))
    if event.field not in edited:
        edited = edited + (event.field,)
    return CorrectedState(draft=draft, errors=remaining, edited_fields=edited, **_carry(state))


_ACCEPTS: Dict[str, FrozenSet[type]] = {
    "input": frozenset({DraftExtracted, SearchMatched, ManualSubmitted}),
    "extracted": frozenset({FieldEdited, Resubmitted}),
    "needs_correction": frozenset({FieldEdited, Resubmitted}),
    "corrected": frozenset({FieldEdited, Resubmitted}),
    "valid": frozenset({AnalysisAttached, AnalysisSkipped, FieldEdited}),
}


def transition(state, event: Event, review_threshold: Optional[int] = None):
    """Apply ``event`` to ``state``.

    Args:
        state: Current wizard state
        event: Event to apply
        review_threshold: Confidence below which a valid draft is flagged
            for review; None disables the flag

    Returns:
        The next state

    Raises:
        InvalidTransitionError: If ``state`` does not accept ``event``
    """
    if type(event) not in _ACCEPTS.get(state.kind, frozenset()):
        raise InvalidTransitionError(state.kind, type(event).__name__)

    if isinstance(state, InputState):
        if isinstance(event, DraftExtracted):
            return ExtractedState(
                draft=_with_hints(event.draft, state.hints),
                children=event.children,
                hints=state.hints,
                added_method="document",
                confidence=event.confidence,
                document_parsed_data=event.document_parsed_data,
            )
        if isinstance(event, SearchMatched):
            return ExtractedState(
                draft=_with_hints(event.draft, state.hints),
                hints=state.hints,
                added_method="search",
            )
        draft = normalize_draft(_with_hints(event.draft, state.hints))
        carry = {
            "children": event.children,
            "hints": state.hints,
            "added_method": "manual",
            "confidence": None,
            "document_parsed_data": None,
        }
        return evaluate(draft, carry, review_threshold)

    if isinstance(event, FieldEdited):
        if isinstance(state, ExtractedState):
            # Edits before the first validation stay in extracted
            return state.model_copy(update={"draft": apply_edits(state.draft, {event.field: event.value})})
        return _edit(state, event)

    if isinstance(event, Resubmitted):
        draft = normalize_draft(event.draft) if event.draft is not None else state.draft
        return evaluate(draft, _carry(state), review_threshold)

    if isinstance(event, AnalysisAttached):
        return state.model_copy(update={"analysis": event.analysis, "analysis_skipped": False})

    return state.model_copy(update={"analysis": None, "analysis_skipped": True})


# ---------------------------------------------------------------------------
# Manual entry
# ---------------------------------------------------------------------------

class ManualEntryForm(FrozenCamelModel):
    """Three-step manual capture form.

    Fields are assembled step by step; nothing is validated until
    :meth:`submit`.
    """

    STEPS: ClassVar[Tuple[Tuple[str, FrozenSet[str]], ...]] = (
        ("policy", frozenset({"insurer_id", "insurer_name", "policy_type", "policy_number", "policy_name"})),
        ("terms", frozenset({"start_date", "end_date", "premium", "premium_frequency", "coverage_amount", "deductible"})),
        ("holder", frozenset({
            "holder_name", "holder_afm", "holder_address", "holder_phone", "holder_email",
            "notes", "vehicle", "property",
        })),
    )

    step: int = Field(default=1, ge=1, le=3)
    draft: PolicyDraft = Field(default_factory=PolicyDraft)
    hints: IntakeHints = Field(default_factory=IntakeHints)

    @classmethod
    def start(cls, hints: Optional[IntakeHints] = None) -> "ManualEntryForm":
        hints = hints or IntakeHints()
        return cls(
            draft=PolicyDraft(insurer_id=hints.insurer_id, policy_type=hints.policy_type),
            hints=hints,
        )

    @property
    def step_name(self) -> str:
        return self.STEPS[self.step - 1][0]

    def step_fields(self) -> FrozenSet[str]:
        return self.STEPS[self.step - 1][1]

    def fill(self, fields: Mapping[str, Any]) -> "ManualEntryForm":
        """Set fields belonging to the current step; others are ignored."""
        allowed = self.step_fields()
        edits = {}
        for key, value in fields.items():
            head = key.split(".", 1)[0]
            name = next((f for f in allowed if f == head or to_camel(f) == head), None)
            if name is not None:
                edits[key] = value
        return self.model_copy(update={"draft": apply_edits(self.draft, edits)})

    def next(self) -> "ManualEntryForm":
        return self.model_copy(update={"step": min(self.step + 1, len(self.STEPS))})

    def back(self) -> "ManualEntryForm":
        return self.model_copy(update={"step": max(self.step - 1, 1)})

    @property
    def is_last_step(self) -> bool:
        return self.step == len(self.STEPS)

    def submit(self, children: Optional[ChildEntities] = None) -> ManualSubmitted:
        return ManualSubmitted(draft=self.draft, children=children or ChildEntities())
