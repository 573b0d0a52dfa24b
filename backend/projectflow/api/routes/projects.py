"""Project API routes: CRUD plus derived views over the ProjectStore."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response

from projectflow.api.deps import get_project_store
from projectflow.domain import metrics
from projectflow.domain.models import Project, ProjectFields
from projectflow.domain.templates import PROJECT_TYPES, STAGE_TEMPLATES
from projectflow.domain.timeline import timeline_bounds, timeline_entries
from projectflow.schemas.projects import (
    CountResponse,
    ProjectSummaryResponse,
    ProjectTypeResponse,
    TimelineEntryResponse,
    TimelineResponse,
)
from projectflow.services.project_store import ProjectStore

router = APIRouter()


def _get_or_404(store: ProjectStore, project_id: str) -> Project:
    project = store.get_project(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("/types", response_model=list[ProjectTypeResponse])
async def list_project_types():
    """Project types with the stages they seed on creation."""
    return [
        ProjectTypeResponse(id=pt.id, name=pt.name, stages=STAGE_TEMPLATES.get(pt.id, []))
        for pt in PROJECT_TYPES
    ]


@router.get("/", response_model=list[Project])
async def list_projects(store: ProjectStore = Depends(get_project_store)):
    return store.list_projects()


@router.post("/", response_model=Project, status_code=201)
async def create_project(
    request: ProjectFields,
    apply_templates: bool = True,
    store: ProjectStore = Depends(get_project_store),
):
    """Create a project; stages are seeded from its project types unless disabled."""
    return await store.create_project(request, apply_templates=apply_templates)


@router.get("/{project_id}", response_model=Project)
async def get_project(project_id: str, store: ProjectStore = Depends(get_project_store)):
    return _get_or_404(store, project_id)


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: str,
    updates: dict[str, Any] = Body(...),
    store: ProjectStore = Depends(get_project_store),
):
    """Shallow-merge fields (camelCase or snake_case keys)."""
    project = await store.update_project(project_id, updates)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.delete("/{project_id}", status_code=204)
async def delete_project(project_id: str, store: ProjectStore = Depends(get_project_store)):
    if not await store.delete_project(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return Response(status_code=204)


@router.get("/{project_id}/summary", response_model=ProjectSummaryResponse)
async def get_project_summary(project_id: str, store: ProjectStore = Depends(get_project_store)):
    """Spend, budget usage and progress, recomputed on every call."""
    project = _get_or_404(store, project_id)
    return ProjectSummaryResponse.model_validate(metrics.project_summary(project))


@router.get("/{project_id}/timeline", response_model=TimelineResponse)
async def get_project_timeline(project_id: str, store: ProjectStore = Depends(get_project_store)):
    """Dated subtasks as timeline rows; undated subtasks are omitted."""
    project = _get_or_404(store, project_id)
    entries = timeline_entries(project.subtasks)
    bounds = timeline_bounds(entries)
    return TimelineResponse(
        project_id=project.id,
        start=bounds[0] if bounds else None,
        end=bounds[1] if bounds else None,
        items=[
            TimelineEntryResponse(
                subtask_id=e.subtask_id,
                name=e.name,
                stage_id=e.stage_id,
                status=e.status,
                start=e.start,
                end=e.end,
                duration_days=e.duration_days,
            )
            for e in entries
        ],
    )


@router.post("/{project_id}/complete-all", response_model=CountResponse)
async def mark_all_subtasks_as_done(project_id: str, store: ProjectStore = Depends(get_project_store)):
    """Mark every subtask Done (project close-out)."""
    count = await store.mark_all_subtasks_as_done(project_id)
    if count is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return CountResponse(count=count)
