"""Main API routes for Linear Connect."""

from fastapi import APIRouter

from .operations import router as operations_router

# Main API router
router = APIRouter()

# Include sub-routers
router.include_router(operations_router, tags=["operations"])
