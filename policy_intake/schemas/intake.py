"""Request and response payloads of the intake API."""

from typing import Any, Dict, Optional

from pydantic import Field

from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.base import CamelModel, FrozenCamelModel
from policy_intake.schemas.draft import ChildEntities, PolicyDraft
from policy_intake.schemas.policy import AddedMethod


class IntakeHints(FrozenCamelModel):
    """Context selected by the user before capture; kept across fallbacks."""
    insurer_id: Optional[str] = None
    policy_type: Optional[str] = None


class DocumentPayload(FrozenCamelModel):
    """Document as base64 (optionally a data URL) or raw text."""
    base64: Optional[str] = None
    text: Optional[str] = None


class DocumentIntakeRequest(CamelModel):
    document: DocumentPayload
    mime_type: Optional[str] = None
    hints: IntakeHints = Field(default_factory=IntakeHints)


class ManualIntakeRequest(CamelModel):
    draft: PolicyDraft
    hints: IntakeHints = Field(default_factory=IntakeHints)
    children: ChildEntities = Field(default_factory=ChildEntities)


class ResubmitRequest(CamelModel):
    draft: PolicyDraft
    edits: Dict[str, Any] = Field(default_factory=dict)
    confidence: Optional[int] = Field(default=None, ge=0, le=100)
    added_method: AddedMethod = "manual"
    children: ChildEntities = Field(default_factory=ChildEntities)


class ConfirmRequest(CamelModel):
    draft: PolicyDraft
    skip_analysis: bool = False
    locale: Optional[str] = None
    confidence: Optional[int] = Field(default=None, ge=0, le=100)
    added_method: AddedMethod = "manual"


class CommitRequest(CamelModel):
    draft: PolicyDraft
    children: ChildEntities = Field(default_factory=ChildEntities)
    analysis: Optional[AnalysisResult] = None
    added_method: AddedMethod = "manual"
    document_parsed_data: Optional[Dict[str, Any]] = None
