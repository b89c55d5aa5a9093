"""Policy Draft and the child entities decomposed from it at commit time."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field

from policy_intake.schemas.base import CamelModel, FrozenCamelModel


class VehicleDetails(FrozenCamelModel):
    """Vehicle attached to an auto policy."""
    vehicle_type: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    license_plate: Optional[str] = None
    vin: Optional[str] = None
    engine_size: Optional[str] = None
    fuel_type: Optional[str] = None
    color: Optional[str] = None
    market_value: Optional[Decimal] = Field(default=None, ge=0)
    primary_use: Optional[str] = None


class PropertyDetails(FrozenCamelModel):
    """Insured property for home/property policies."""
    property_type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    square_meters: Optional[Decimal] = Field(default=None, ge=0)
    year_built: Optional[int] = None
    construction_type: Optional[str] = None
    building_value: Optional[Decimal] = Field(default=None, ge=0)
    contents_value: Optional[Decimal] = Field(default=None, ge=0)


class PolicyDraft(FrozenCamelModel):
    """Canonical, flat working record of a policy before commit.

    Unset fields are ``None``; the Validator distinguishes "missing" from an
    explicit zero. Dates are ISO ``YYYY-MM-DD`` strings when they could be
    parsed, otherwise the raw text so the Validator can flag them.
    """

    insurer_id: Optional[str] = None
    insurer_name: Optional[str] = None
    policy_type: Optional[str] = None
    policy_number: Optional[str] = None
    policy_name: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    premium: Optional[Decimal] = None
    premium_frequency: Optional[str] = None
    coverage_amount: Optional[Decimal] = Field(default=None, ge=0)
    deductible: Optional[Decimal] = Field(default=None, ge=0)
    holder_name: Optional[str] = None
    holder_afm: Optional[str] = None
    holder_address: Optional[str] = None
    holder_phone: Optional[str] = None
    holder_email: Optional[str] = None
    notes: Optional[str] = None
    vehicle: Optional[VehicleDetails] = None
    property: Optional[PropertyDetails] = None

    def flat_fields(self) -> Dict[str, Any]:
        """Scalar fields only, keyed by attribute name."""
        return self.model_dump(exclude={"vehicle", "property"})


class CoverageInput(CamelModel):
    coverage_type: Optional[str] = None
    coverage_name: Optional[str] = None
    description: Optional[str] = None
    limit_amount: Optional[Decimal] = None
    limit_type: Optional[str] = None
    deductible: Optional[Decimal] = None
    co_pay_percent: Optional[Decimal] = None
    waiting_period: Optional[int] = None
    exclusions: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)


class BeneficiaryInput(CamelModel):
    full_name: Optional[str] = None
    relationship: Optional[str] = None
    beneficiary_type: Optional[str] = None
    date_of_birth: Optional[str] = None
    afm: Optional[str] = None
    id_number: Optional[str] = None
    percentage: Optional[Decimal] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class DriverInput(CamelModel):
    full_name: Optional[str] = None
    driver_type: Optional[str] = None
    date_of_birth: Optional[str] = None
    afm: Optional[str] = None
    license_number: Optional[str] = None
    license_issue_date: Optional[str] = None
    license_expiry_date: Optional[str] = None
    license_categories: List[str] = Field(default_factory=list)
    years_licensed: Optional[int] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class ChildEntities(CamelModel):
    """Child records committed alongside a policy.

    Vehicle and property fall back to the draft's own blocks when absent.
    """
    coverages: List[CoverageInput] = Field(default_factory=list)
    beneficiaries: List[BeneficiaryInput] = Field(default_factory=list)
    drivers: List[DriverInput] = Field(default_factory=list)
    vehicle: Optional[VehicleDetails] = None
    property: Optional[PropertyDetails] = None
