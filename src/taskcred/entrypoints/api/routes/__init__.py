"""API route modules."""

from fastapi import APIRouter

from taskcred.entrypoints.api.routes.tasks import router as tasks_router
from taskcred.entrypoints.api.routes.users import router as users_router

# Create main API router
api_router = APIRouter()

api_router.include_router(users_router)
api_router.include_router(tasks_router)

__all__ = ["api_router"]
