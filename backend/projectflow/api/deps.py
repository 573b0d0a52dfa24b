"""FastAPI dependencies shared by the route modules."""

from fastapi import Depends, Request

from projectflow.agent.planner import Planner
from projectflow.agent.planner_fake import PlannerFake
from projectflow.core.config import get_settings
from projectflow.services.planning_service import PlanningService
from projectflow.services.project_store import ProjectStore


def get_project_store(request: Request) -> ProjectStore:
    """The ProjectStore created during application lifespan."""
    return request.app.state.project_store


def get_planner() -> Planner:
    """Dependency that provides a Planner instance.

    Returns PlannerReal in production (when ANTHROPIC_API_KEY is set).
    Falls back to PlannerFake for local dev without API key.
    Override this dependency in tests via app.dependency_overrides.
    """
    settings = get_settings()

    if settings.anthropic_api_key:
        from projectflow.agent.planner_real import PlannerReal

        return PlannerReal()
    return PlannerFake()


def get_planning_service(
    planner: Planner = Depends(get_planner),
    store: ProjectStore = Depends(get_project_store),
) -> PlanningService:
    return PlanningService(planner, store)
