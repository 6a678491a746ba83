"""
API v1 Router

All API endpoints for the mobile client.
"""

from fastapi import APIRouter

from huntr.api.v1.endpoints import analysis

router = APIRouter()

# Include all endpoint routers
router.include_router(analysis.router, prefix="/analysis", tags=["Chart Analysis"])
