from .base_repository import BaseRepository
from .policy_repository import (
    BeneficiaryRepository,
    CoverageRepository,
    DriverRepository,
    InsurerDirectoryRepository,
    PolicyRepository,
    PropertyRepository,
    VehicleRepository,
)

__all__ = [
    "BaseRepository",
    "BeneficiaryRepository",
    "CoverageRepository",
    "DriverRepository",
    "InsurerDirectoryRepository",
    "PolicyRepository",
    "PropertyRepository",
    "VehicleRepository",
]
