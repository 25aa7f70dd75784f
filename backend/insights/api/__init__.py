"""
API routes initialization.

This module aggregates all API routers and provides a single router
to include in the main application.
"""

from fastapi import APIRouter

from insights.api.routes import insights

# Create main API router
api_router = APIRouter()

# Include submission analysis + client insight routes
api_router.include_router(insights.router)
