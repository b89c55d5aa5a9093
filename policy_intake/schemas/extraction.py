"""Candidate Extraction Record: the raw, all-optional output of the
document-understanding service.

Every leaf is optional and every group tolerates a malformed shape: a scalar
where a group is expected, a group where a scalar is expected, or non-object
list items are dropped instead of failing the whole record. Unknown keys are
ignored.
"""

from decimal import Decimal
from typing import Annotated, Any, List, Optional, Union

from pydantic import BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from policy_intake.schemas.base import CamelModel


def _scalar_or_none(value: Any) -> Any:
    if isinstance(value, (dict, list, tuple, set)):
        return None
    return value


def _mapping_or_none(value: Any) -> Any:
    return value if isinstance(value, dict) else None


def _object_list(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _string_list(value: Any) -> list:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


Scalar = Annotated[Optional[Union[str, int, float, bool, Decimal]], BeforeValidator(_scalar_or_none)]
StringList = Annotated[List[str], BeforeValidator(_string_list)]


class CandidateGroup(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PolicyGroup(CandidateGroup):
    number: Scalar = None
    name: Scalar = None
    type: Scalar = None
    start_date: Scalar = None
    end_date: Scalar = None
    premium: Scalar = None
    premium_frequency: Scalar = None
    coverage_amount: Scalar = None
    deductible: Scalar = None


class InsurerGroup(CandidateGroup):
    id: Scalar = None
    name: Scalar = None


class PolicyholderGroup(CandidateGroup):
    name: Scalar = None
    afm: Scalar = None
    address: Scalar = None
    phone: Scalar = None
    email: Scalar = None


class CoverageGroup(CandidateGroup):
    type: Scalar = None
    name: Scalar = None
    description: Scalar = None
    limit: Scalar = None
    limit_type: Scalar = None
    deductible: Scalar = None
    co_pay_percent: Scalar = None
    waiting_period: Scalar = None
    exclusions: StringList = Field(default_factory=list)
    conditions: StringList = Field(default_factory=list)


class VehicleGroup(CandidateGroup):
    type: Scalar = None
    make: Scalar = None
    model: Scalar = None
    year: Scalar = None
    plate: Scalar = None
    vin: Scalar = None
    engine_size: Scalar = None
    fuel_type: Scalar = None
    color: Scalar = None
    market_value: Scalar = None
    primary_use: Scalar = None


class PropertyGroup(CandidateGroup):
    type: Scalar = None
    address: Scalar = None
    city: Scalar = None
    postal_code: Scalar = None
    region: Scalar = None
    country: Scalar = None
    sqm: Scalar = None
    year_built: Scalar = None
    construction_type: Scalar = None
    building_value: Scalar = None
    contents_value: Scalar = None


class BeneficiaryGroup(CandidateGroup):
    name: Scalar = None
    relationship: Scalar = None
    type: Scalar = None
    date_of_birth: Scalar = None
    afm: Scalar = None
    id_number: Scalar = None
    percentage: Scalar = None
    address: Scalar = None
    phone: Scalar = None
    email: Scalar = None


class DriverGroup(CandidateGroup):
    name: Scalar = None
    type: Scalar = None
    date_of_birth: Scalar = None
    afm: Scalar = None
    license_number: Scalar = None
    license_issue_date: Scalar = None
    license_expiry_date: Scalar = None
    license_categories: StringList = Field(default_factory=list)
    years_licensed: Scalar = None
    address: Scalar = None
    phone: Scalar = None
    email: Scalar = None


class ClaimProcessGroup(CandidateGroup):
    steps: StringList = Field(default_factory=list)
    phone: Scalar = None
    email: Scalar = None
    website: Scalar = None
    deadline_days: Scalar = None


class ConfidenceGroup(CandidateGroup):
    overall: Scalar = None


class CandidateExtractionRecord(CandidateGroup):
    """Root of the extraction output contract."""

    policy: Annotated[Optional[PolicyGroup], BeforeValidator(_mapping_or_none)] = None
    insurer: Annotated[Optional[InsurerGroup], BeforeValidator(_mapping_or_none)] = None
    policyholder: Annotated[Optional[PolicyholderGroup], BeforeValidator(_mapping_or_none)] = None
    coverages: Annotated[List[CoverageGroup], BeforeValidator(_object_list)] = Field(default_factory=list)
    vehicle: Annotated[Optional[VehicleGroup], BeforeValidator(_mapping_or_none)] = None
    property: Annotated[Optional[PropertyGroup], BeforeValidator(_mapping_or_none)] = None
    beneficiaries: Annotated[List[BeneficiaryGroup], BeforeValidator(_object_list)] = Field(default_factory=list)
    drivers: Annotated[List[DriverGroup], BeforeValidator(_object_list)] = Field(default_factory=list)
    perks: StringList = Field(default_factory=list)
    claim_process: Annotated[Optional[ClaimProcessGroup], BeforeValidator(_mapping_or_none)] = None
    possible_claims: StringList = Field(default_factory=list)
    confidence: Annotated[Optional[ConfidenceGroup], BeforeValidator(_mapping_or_none)] = None


class ExtractionResult(CamelModel):
    """Successful output of the extraction adapter."""

    record: CandidateExtractionRecord
    confidence: int = Field(ge=0, le=100)
    contract_version: str
    raw: dict = Field(default_factory=dict, description="Parsed model payload as received")
