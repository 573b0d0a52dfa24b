from fastapi import APIRouter

from projectflow.api.routes import health, planning, projects, stages, subtasks

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(stages.router, prefix="/projects", tags=["stages"])
api_router.include_router(subtasks.router, prefix="/projects", tags=["subtasks"])
api_router.include_router(planning.router, prefix="/projects", tags=["planning"])
