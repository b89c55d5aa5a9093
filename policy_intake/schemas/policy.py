"""Committed policy aggregate and its child records."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.base import CamelModel
from policy_intake.schemas.draft import (
    BeneficiaryInput,
    CoverageInput,
    DriverInput,
    PolicyDraft,
    PropertyDetails,
    VehicleDetails,
)

AddedMethod = Literal["document", "search", "manual"]
ChildKind = Literal["coverage", "beneficiary", "driver", "vehicle", "property"]


class StoredRecord(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    policy_id: UUID
    created_at: Optional[datetime] = None


class CoverageRecord(StoredRecord, CoverageInput):
    pass


class BeneficiaryRecord(StoredRecord, BeneficiaryInput):
    pass


class DriverRecord(StoredRecord, DriverInput):
    pass


class VehicleRecord(StoredRecord, VehicleDetails):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True, frozen=False)


class PropertyRecord(StoredRecord, PropertyDetails):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True, frozen=False)


class PolicyAggregate(PolicyDraft):
    """A committed policy: draft fields plus identity, status and children."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True, frozen=False)

    id: UUID
    status: str = "active"
    added_method: AddedMethod = "manual"
    user_id: Optional[str] = None
    document_parsed_data: Optional[Dict[str, Any]] = None
    analysis: Optional[AnalysisResult] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    coverages: List[CoverageRecord] = Field(default_factory=list)
    beneficiaries: List[BeneficiaryRecord] = Field(default_factory=list)
    drivers: List[DriverRecord] = Field(default_factory=list)
    vehicles: List[VehicleRecord] = Field(default_factory=list)
    properties: List[PropertyRecord] = Field(default_factory=list)

    def to_draft(self) -> PolicyDraft:
        """The draft fields of this aggregate."""
        return PolicyDraft.model_validate(self.model_dump(include=set(PolicyDraft.model_fields)))


class ChildWarning(CamelModel):
    """A child record that was skipped or failed to persist."""
    kind: ChildKind
    index: int
    reason: str


class ReconciliationResult(CamelModel):
    policy: PolicyAggregate
    created: Dict[str, int] = Field(default_factory=dict)
    warnings: List[ChildWarning] = Field(default_factory=list)
