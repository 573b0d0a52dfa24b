"""AI planning API routes: suggest, organize and summarize."""

from fastapi import APIRouter, Depends

from projectflow.api.deps import get_planning_service
from projectflow.domain.models import Subtask
from projectflow.schemas.projects import (
    ExecutiveSummaryRequest,
    ExecutiveSummaryResponse,
    SuggestSubtasksRequest,
)
from projectflow.services.planning_service import PlanningService

router = APIRouter()


@router.post("/{project_id}/ai/suggest", response_model=list[Subtask])
async def suggest_subtasks(
    project_id: str,
    request: SuggestSubtasksRequest,
    service: PlanningService = Depends(get_planning_service),
):
    """Add AI-suggested subtasks to a stage (the first stage when none is given).

    Raises:
        404: Unknown project or stage
        422: Project has no scope of work or no stages
        502: Planner call failed; nothing was added
    """
    return await service.suggest_subtasks(project_id, request.stage_id)


@router.post("/{project_id}/ai/organize", response_model=list[Subtask])
async def organize_subtasks(project_id: str, service: PlanningService = Depends(get_planning_service)):
    """Regroup existing subtasks across stages; returns the full new subtask list."""
    return await service.organize_subtasks(project_id)


@router.post("/{project_id}/ai/summary", response_model=ExecutiveSummaryResponse)
async def generate_executive_summary(
    project_id: str,
    request: ExecutiveSummaryRequest,
    service: PlanningService = Depends(get_planning_service),
):
    summary = await service.generate_executive_summary(project_id, request.currency_symbol)
    return ExecutiveSummaryResponse(project_id=project_id, executive_summary=summary)
