"""
API v1 routes.
"""

from fastapi import APIRouter

from src.api.v1 import auth, organizations

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
