"""Policy store boundary and its SQLAlchemy implementation."""

import asyncio
from typing import Any, Dict, Optional, Protocol, Type, runtime_checkable
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from policy_intake.core.exceptions import DatabaseError
from policy_intake.database.models import Policy
from policy_intake.repositories.policy_repository import (
    BeneficiaryRepository,
    CoverageRepository,
    DriverRepository,
    InsurerDirectoryRepository,
    PolicyRepository,
    PropertyRepository,
    VehicleRepository,
)
from policy_intake.schemas.analysis import AnalysisResult
from policy_intake.schemas.draft import (
    BeneficiaryInput,
    CoverageInput,
    DriverInput,
    PolicyDraft,
    PropertyDetails,
    VehicleDetails,
)
from policy_intake.schemas.policy import (
    AddedMethod,
    BeneficiaryRecord,
    CoverageRecord,
    DriverRecord,
    PolicyAggregate,
    PropertyRecord,
    VehicleRecord,
)
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


@runtime_checkable
class PolicyStore(Protocol):
    """Durable storage for policy aggregates, one call per entity."""

    async def create_policy(
        self,
        draft: PolicyDraft,
        added_method: AddedMethod = "manual",
        document_parsed_data: Optional[Dict[str, Any]] = None,
        analysis: Optional[AnalysisResult] = None,
        user_id: Optional[str] = None,
    ) -> PolicyAggregate: ...

    async def create_coverage(self, policy_id: UUID, coverage: CoverageInput) -> CoverageRecord: ...

    async def create_beneficiary(self, policy_id: UUID, beneficiary: BeneficiaryInput) -> BeneficiaryRecord: ...

    async def create_driver(self, policy_id: UUID, driver: DriverInput) -> DriverRecord: ...

    async def create_vehicle(self, policy_id: UUID, vehicle: VehicleDetails) -> VehicleRecord: ...

    async def create_property(self, policy_id: UUID, property: PropertyDetails) -> PropertyRecord: ...

    async def get_policy(self, policy_id: UUID) -> Optional[PolicyAggregate]: ...


@runtime_checkable
class PolicyDirectory(Protocol):
    """Policies published by insurers, searchable by identifier."""

    async def find(self, insurer_id: str, policy_number: str) -> Optional[Dict[str, Any]]: ...


def _columns(instance: Any) -> Dict[str, Any]:
    """Loaded column values of an ORM instance, without unset ones."""
    return {
        column.key: getattr(instance, column.key)
        for column in instance.__table__.columns
        if getattr(instance, column.key) is not None
    }


def _to_record(model: Type[BaseModel], instance: Any) -> Any:
    return model.model_validate(_columns(instance))


def policy_to_aggregate(policy: Policy, **children: Any) -> PolicyAggregate:
    """Build the aggregate view of a parent record and its children."""
    values = _columns(policy)
    values["vehicle"] = values.pop("vehicle_data", None)
    values["property"] = values.pop("property_data", None)
    values.update(children)
    return PolicyAggregate.model_validate(values)


class SqlAlchemyPolicyStore:
    """PolicyStore over one async session.

    Every write is committed on its own so a failed child leaves the parent
    and its siblings in place. Writes are serialised because an
    ``AsyncSession`` must not be used concurrently.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.policies = PolicyRepository(session)
        self.coverages = CoverageRepository(session)
        self.beneficiaries = BeneficiaryRepository(session)
        self.drivers = DriverRepository(session)
        self.vehicles = VehicleRepository(session)
        self.properties = PropertyRepository(session)
        self._lock = asyncio.Lock()

    async def create_policy(
        self,
        draft: PolicyDraft,
        added_method: AddedMethod = "manual",
        document_parsed_data: Optional[Dict[str, Any]] = None,
        analysis: Optional[AnalysisResult] = None,
        user_id: Optional[str] = None,
    ) -> PolicyAggregate:
        async with self._lock:
            try:
                policy = await self.policies.create_policy(
                    fields=draft.flat_fields(),
                    added_method=added_method,
                    user_id=user_id,
                    vehicle_data=draft.vehicle.model_dump(mode="json", exclude_none=True) if draft.vehicle else None,
                    property_data=draft.property.model_dump(mode="json", exclude_none=True) if draft.property else None,
                    document_parsed_data=document_parsed_data,
                    analysis=analysis.model_dump(mode="json", by_alias=True) if analysis else None,
                )
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to create policy: {e}", original_error=e)
            # Convert before any later rollback expires the instance
            return policy_to_aggregate(policy)

    async def _create_child(self, repository, record_model: Type[BaseModel], policy_id: UUID, child: BaseModel):
        async with self._lock:
            try:
                instance = await repository.create_for_policy(policy_id, child.model_dump())
            except SQLAlchemyError as e:
                raise DatabaseError(
                    f"Failed to create {repository.model.__name__}: {e}", original_error=e
                )
            return _to_record(record_model, instance)

    async def create_coverage(self, policy_id: UUID, coverage: CoverageInput) -> CoverageRecord:
        return await self._create_child(self.coverages, CoverageRecord, policy_id, coverage)

    async def create_beneficiary(self, policy_id: UUID, beneficiary: BeneficiaryInput) -> BeneficiaryRecord:
        return await self._create_child(self.beneficiaries, BeneficiaryRecord, policy_id, beneficiary)

    async def create_driver(self, policy_id: UUID, driver: DriverInput) -> DriverRecord:
        return await self._create_child(self.drivers, DriverRecord, policy_id, driver)

    async def create_vehicle(self, policy_id: UUID, vehicle: VehicleDetails) -> VehicleRecord:
        return await self._create_child(self.vehicles, VehicleRecord, policy_id, vehicle)

    async def create_property(self, policy_id: UUID, property: PropertyDetails) -> PropertyRecord:
        return await self._create_child(self.properties, PropertyRecord, policy_id, property)

    async def get_policy(self, policy_id: UUID) -> Optional[PolicyAggregate]:
        """Load a committed aggregate with all of its children."""
        async with self._lock:
            policy = await self.policies.get_by_id(policy_id)
            if policy is None:
                return None
            return policy_to_aggregate(
                policy,
                coverages=[_to_record(CoverageRecord, c) for c in await self.coverages.list_for_policy(policy_id)],
                beneficiaries=[
                    _to_record(BeneficiaryRecord, b) for b in await self.beneficiaries.list_for_policy(policy_id)
                ],
                drivers=[_to_record(DriverRecord, d) for d in await self.drivers.list_for_policy(policy_id)],
                vehicles=[_to_record(VehicleRecord, v) for v in await self.vehicles.list_for_policy(policy_id)],
                properties=[_to_record(PropertyRecord, p) for p in await self.properties.list_for_policy(policy_id)],
            )


class SqlAlchemyPolicyDirectory:
    """PolicyDirectory backed by the insurer policy records table."""

    def __init__(self, session: AsyncSession):
        self.repository = InsurerDirectoryRepository(session)

    async def find(self, insurer_id: str, policy_number: str) -> Optional[Dict[str, Any]]:
        record = await self.repository.find_by_identifier(insurer_id, policy_number)
        if record is None:
            return None
        return dict(record.policy_data or {})
