"""Stage API routes: ordered pipeline columns of one project."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response

from projectflow.api.deps import get_project_store
from projectflow.domain.models import Stage
from projectflow.schemas.projects import CountResponse, StageCreateRequest, StageReorderRequest
from projectflow.services.project_store import ProjectStore

router = APIRouter()

_NOT_FOUND = "Project or stage not found"


@router.get("/{project_id}/stages", response_model=list[Stage])
async def list_stages(project_id: str, store: ProjectStore = Depends(get_project_store)):
    """Stages in pipeline order."""
    project = store.get_project(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project.sorted_stages()


@router.post("/{project_id}/stages", response_model=Stage, status_code=201)
async def add_stage(
    project_id: str,
    request: StageCreateRequest,
    store: ProjectStore = Depends(get_project_store),
):
    stage = await store.add_stage(project_id, request.name)
    if stage is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return stage


@router.put("/{project_id}/stages", response_model=list[Stage])
async def replace_stages(
    project_id: str,
    stages: list[dict[str, Any]] = Body(...),
    store: ProjectStore = Depends(get_project_store),
):
    """Bulk-replace the stage list. Orders must stay dense."""
    replaced = await store.set_project_stages(project_id, stages)
    if replaced is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return replaced


@router.patch("/{project_id}/stages/{stage_id}", response_model=Stage)
async def update_stage(
    project_id: str,
    stage_id: str,
    updates: dict[str, Any] = Body(...),
    store: ProjectStore = Depends(get_project_store),
):
    """Rename a stage. ``order`` in the body is ignored; use the reorder endpoint."""
    stage = await store.update_stage(project_id, stage_id, updates)
    if stage is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return stage


@router.delete("/{project_id}/stages/{stage_id}", status_code=204)
async def delete_stage(project_id: str, stage_id: str, store: ProjectStore = Depends(get_project_store)):
    """Delete a stage together with all of its subtasks."""
    if not await store.delete_stage(project_id, stage_id):
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return Response(status_code=204)


@router.post("/{project_id}/stages/{stage_id}/reorder", response_model=list[Stage])
async def reorder_stage(
    project_id: str,
    stage_id: str,
    request: StageReorderRequest,
    store: ProjectStore = Depends(get_project_store),
):
    stages = await store.reorder_stages(project_id, stage_id, request.target_stage_id)
    if stages is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return stages


@router.delete("/{project_id}/stages/{stage_id}/subtasks", response_model=CountResponse)
async def clear_stage_subtasks(project_id: str, stage_id: str, store: ProjectStore = Depends(get_project_store)):
    """Remove every subtask in a stage, keeping the stage."""
    removed = await store.clear_stage_subtasks(project_id, stage_id)
    if removed is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return CountResponse(count=removed)
