from fastapi import APIRouter

from policy_intake.api.v1.endpoints import intake, policies

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(intake.router, prefix="/intake", tags=["Intake"])
api_router.include_router(policies.router, prefix="/policies", tags=["Policies"])

__all__ = ["api_router"]
