"""Repositories for committed policies, their children and the insurer directory."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from policy_intake.database.models import (
    InsurerPolicyRecord,
    Policy,
    PolicyBeneficiary,
    PolicyCoverage,
    PolicyDriver,
    PolicyProperty,
    PolicyVehicle,
)
from policy_intake.repositories.base_repository import BaseRepository
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PolicyRepository(BaseRepository[Policy]):
    """Repository for parent policy records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Policy)

    async def create_policy(
        self,
        fields: Dict[str, Any],
        added_method: str = "manual",
        user_id: Optional[str] = None,
        vehicle_data: Optional[dict] = None,
        property_data: Optional[dict] = None,
        document_parsed_data: Optional[dict] = None,
        analysis: Optional[dict] = None,
    ) -> Policy:
        """Create the parent policy record.

        Args:
            fields: Flat draft fields keyed by column name
            added_method: Capture method (document | search | manual)
            user_id: Owning user, when known
            vehicle_data: Vehicle block of the draft as JSON
            property_data: Property block of the draft as JSON
            document_parsed_data: Raw extraction payload
            analysis: Plain-language analysis as JSON

        Returns:
            Created Policy record
        """
        return await self.create(
            **fields,
            status="active",
            added_method=added_method,
            user_id=user_id,
            vehicle_data=vehicle_data,
            property_data=property_data,
            document_parsed_data=document_parsed_data,
            analysis=analysis,
        )


class ChildRepository(BaseRepository):
    """Repository for records owned by a policy."""

    async def create_for_policy(self, policy_id: UUID, values: Dict[str, Any]) -> Any:
        """Create one child record; unset fields fall back to column defaults."""
        return await self.create(
            policy_id=policy_id,
            **{key: value for key, value in values.items() if value is not None},
        )

    async def list_for_policy(self, policy_id: UUID) -> List[Any]:
        """Fetch all records of this kind for a policy, oldest first."""
        try:
            result = await self.session.execute(
                select(self.model)
                .where(self.model.policy_id == policy_id)
                .order_by(self.model.created_at)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error listing {self.model.__name__} for policy {policy_id}: {str(e)}",
                exc_info=True
            )
            raise


class CoverageRepository(ChildRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, PolicyCoverage)


class BeneficiaryRepository(ChildRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, PolicyBeneficiary)


class DriverRepository(ChildRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, PolicyDriver)


class VehicleRepository(ChildRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, PolicyVehicle)


class PropertyRepository(ChildRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, PolicyProperty)


class InsurerDirectoryRepository(BaseRepository[InsurerPolicyRecord]):
    """Policies published by insurers, keyed by (insurer id, policy number)."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, InsurerPolicyRecord)

    async def find_by_identifier(
        self, insurer_id: str, policy_number: str
    ) -> Optional[InsurerPolicyRecord]:
        """Look up a published policy.

        Args:
            insurer_id: Insurer identifier
            policy_number: Policy number as printed on the policy

        Returns:
            The record if the insurer publishes this policy, None otherwise
        """
        LOGGER.info(
            "Searching insurer directory",
            extra={"insurer_id": insurer_id, "policy_number": policy_number}
        )
        try:
            result = await self.session.execute(
                select(InsurerPolicyRecord).where(
                    InsurerPolicyRecord.insurer_id == insurer_id,
                    InsurerPolicyRecord.policy_number == policy_number,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error searching insurer directory: {str(e)}",
                exc_info=True
            )
            raise
