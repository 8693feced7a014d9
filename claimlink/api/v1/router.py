from fastapi import APIRouter

from claimlink.api.v1.endpoints import assignments, draft_claims, matching

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(matching.router, prefix="/matching", tags=["Matching"])
api_router.include_router(assignments.router, prefix="/assignments", tags=["Assignments"])
api_router.include_router(draft_claims.router, prefix="/draft-claims", tags=["Draft Claims"])

__all__ = ["api_router"]
