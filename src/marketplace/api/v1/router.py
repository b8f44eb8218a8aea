from fastapi import APIRouter

from src.marketplace.api.v1 import applications, milestones, projects

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(projects.router)
api_router.include_router(applications.router)
api_router.include_router(milestones.router)
