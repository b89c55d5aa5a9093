from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from policy_intake.core.database import get_async_session as get_session
from policy_intake.schemas.common import ApiResponse
from policy_intake.services.intake.policy_store import SqlAlchemyPolicyStore
from policy_intake.utils.logging import get_logger
from policy_intake.utils.responses import create_api_response, create_error_detail

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_policy_store(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> SqlAlchemyPolicyStore:
    return SqlAlchemyPolicyStore(db_session)


@router.get(
    "/{policy_id}",
    response_model=ApiResponse,
    summary="Get a committed policy with its child records",
    operation_id="get_policy",
)
async def get_policy(
    request: Request,
    policy_id: UUID,
    store: Annotated[SqlAlchemyPolicyStore, Depends(get_policy_store)],
) -> ApiResponse:
    """Retrieve a policy aggregate by ID."""
    policy = await store.get_policy(policy_id)
    if policy is None:
        error_detail = create_error_detail(
            title="Policy Not Found",
            status=status.HTTP_404_NOT_FOUND,
            detail=f"Policy with ID {policy_id} not found",
            request=request
        )
        raise HTTPException(status_code=404, detail=error_detail.model_dump(mode="json"))

    return create_api_response(
        data=policy,
        message="Policy retrieved successfully",
        request=request
    )
