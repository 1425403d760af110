"""
API v1 router that includes all endpoint routers.
"""
from fastapi import APIRouter

from code_deployer.api.v1.endpoints import deployments

# Create main API router
api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    deployments.router,
    prefix="/deployments",
    tags=["deployments"],
)
