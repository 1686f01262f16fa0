"""API route modules."""

from fastapi import APIRouter

from damauth.entrypoints.api.routes.auth import router as auth_router

# Create main API router
api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth")

__all__ = ["api_router"]
