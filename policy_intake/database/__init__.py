"""Database module for SQLAlchemy models."""

from policy_intake.database.models import (
    InsurerPolicyRecord,
    Policy,
    PolicyBeneficiary,
    PolicyCoverage,
    PolicyDriver,
    PolicyProperty,
    PolicyVehicle,
)

__all__ = [
    "InsurerPolicyRecord",
    "Policy",
    "PolicyBeneficiary",
    "PolicyCoverage",
    "PolicyDriver",
    "PolicyProperty",
    "PolicyVehicle",
]
