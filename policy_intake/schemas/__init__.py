from .analysis import AnalysisResult
from .draft import (
    BeneficiaryInput,
    ChildEntities,
    CoverageInput,
    DriverInput,
    PolicyDraft,
    PropertyDetails,
    VehicleDetails,
)
from .extraction import CandidateExtractionRecord, ExtractionResult
from .intake import DocumentPayload, IntakeHints
from .policy import ChildWarning, PolicyAggregate, ReconciliationResult

__all__ = [
    "AnalysisResult",
    "BeneficiaryInput",
    "CandidateExtractionRecord",
    "ChildEntities",
    "ChildWarning",
    "CoverageInput",
    "DocumentPayload",
    "DriverInput",
    "ExtractionResult",
    "IntakeHints",
    "PolicyAggregate",
    "PolicyDraft",
    "PropertyDetails",
    "ReconciliationResult",
    "VehicleDetails",
]
