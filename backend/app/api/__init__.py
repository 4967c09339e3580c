############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: API endpoints package and router configuration
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""JSON endpoints for Blog Hut."""

from fastapi import APIRouter

from backend.app.api.engagement_api import router as engagement_router
from backend.app.api.health import router as health_router

# Create main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(health_router)
api_router.include_router(engagement_router)

__all__ = ["api_router"]
