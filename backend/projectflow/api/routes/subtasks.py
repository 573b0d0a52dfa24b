"""Subtask API routes: cards within stages, including moves between stages."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response

from projectflow.api.deps import get_project_store
from projectflow.domain.models import Subtask, SubtaskCore
from projectflow.schemas.projects import SubtaskBatchRequest, SubtaskMoveRequest
from projectflow.services.project_store import ProjectStore

router = APIRouter()


@router.post("/{project_id}/stages/{stage_id}/subtasks", response_model=Subtask, status_code=201)
async def add_subtask(
    project_id: str,
    stage_id: str,
    request: SubtaskCore,
    store: ProjectStore = Depends(get_project_store),
):
    """Append a subtask to the end of a stage."""
    subtask = await store.add_subtask(project_id, stage_id, request)
    if subtask is None:
        raise HTTPException(status_code=404, detail="Project or stage not found")
    return subtask


@router.post("/{project_id}/stages/{stage_id}/subtasks/batch", response_model=list[Subtask], status_code=201)
async def add_subtasks(
    project_id: str,
    stage_id: str,
    request: SubtaskBatchRequest,
    store: ProjectStore = Depends(get_project_store),
):
    """Append several subtasks to a stage, keeping input order."""
    created = await store.add_multiple_subtasks(project_id, stage_id, request.subtasks)
    if created is None:
        raise HTTPException(status_code=404, detail="Project or stage not found")
    return created


@router.put("/{project_id}/subtasks", response_model=list[Subtask])
async def replace_subtasks(
    project_id: str,
    subtasks: list[dict[str, Any]] = Body(...),
    store: ProjectStore = Depends(get_project_store),
):
    """Bulk-replace the subtask list. Orders must stay dense per stage."""
    replaced = await store.set_project_subtasks(project_id, subtasks)
    if replaced is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return replaced


@router.patch("/{project_id}/subtasks/{subtask_id}", response_model=Subtask)
async def update_subtask(
    project_id: str,
    subtask_id: str,
    updates: dict[str, Any] = Body(...),
    store: ProjectStore = Depends(get_project_store),
):
    """Edit subtask fields. ``stageId``/``order`` are ignored; use the move endpoint."""
    subtask = await store.update_subtask(project_id, subtask_id, updates)
    if subtask is None:
        raise HTTPException(status_code=404, detail="Project or subtask not found")
    return subtask


@router.post("/{project_id}/subtasks/{subtask_id}/move", response_model=Subtask)
async def move_subtask(
    project_id: str,
    subtask_id: str,
    request: SubtaskMoveRequest,
    store: ProjectStore = Depends(get_project_store),
):
    subtask = await store.move_subtask(project_id, subtask_id, request.target_stage_id, request.target_order)
    if subtask is None:
        raise HTTPException(status_code=404, detail="Project, subtask or target stage not found")
    return subtask


@router.delete("/{project_id}/subtasks/{subtask_id}", status_code=204)
async def delete_subtask(project_id: str, subtask_id: str, store: ProjectStore = Depends(get_project_store)):
    if not await store.delete_subtask(project_id, subtask_id):
        raise HTTPException(status_code=404, detail="Project or subtask not found")
    return Response(status_code=204)
