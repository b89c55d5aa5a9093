"""Policy document intake pipeline components."""

from .analysis_service import AnalysisService
from .correction_loop import ManualEntryForm, transition
from .extraction_adapter import ExtractionAdapter
from .ingestion_gate import AcceptedDocument, check_payload
from .lookup_service import PolicyLookupService
from .normalizer import apply_edits, draft_to_candidate, merge_partial, normalize, normalize_children
from .pipeline import ConfirmOutcome, ExtractionOutcome, IntakePipeline
from .policy_store import PolicyDirectory, PolicyStore, SqlAlchemyPolicyDirectory, SqlAlchemyPolicyStore
from .reconciliation import ReconciliationOrchestrator
from .validator import validate_draft

__all__ = [
    "AcceptedDocument",
    "AnalysisService",
    "ConfirmOutcome",
    "ExtractionAdapter",
    "ExtractionOutcome",
    "IntakePipeline",
    "ManualEntryForm",
    "PolicyDirectory",
    "PolicyLookupService",
    "PolicyStore",
    "ReconciliationOrchestrator",
    "SqlAlchemyPolicyDirectory",
    "SqlAlchemyPolicyStore",
    "apply_edits",
    "check_payload",
    "draft_to_candidate",
    "merge_partial",
    "normalize",
    "normalize_children",
    "transition",
    "validate_draft",
]
