"""HTTP routes."""

from fastapi import APIRouter

from accounts.api import auth, health

router = APIRouter()
router.include_router(auth.router, tags=["accounts"])
router.include_router(health.router, prefix="/health", tags=["health"])
