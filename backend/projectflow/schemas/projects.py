"""Project API schemas: request/response contracts for the store endpoints.

Responses are serialized with camelCase aliases, matching the persisted shape.
"""

from datetime import date

from pydantic import Field

from projectflow.domain.models import CamelModel, SubtaskCore, SubtaskStatus


class StageCreateRequest(CamelModel):
    name: str = Field(..., min_length=1)


class StageReorderRequest(CamelModel):
    """Move before/after ``target_stage_id``; null moves the stage to the end."""

    target_stage_id: str | None = None


class SubtaskBatchRequest(CamelModel):
    subtasks: list[SubtaskCore] = Field(default_factory=list)


class SubtaskMoveRequest(CamelModel):
    target_stage_id: str
    target_order: int


class CountResponse(CamelModel):
    count: int


class StageProgressResponse(CamelModel):
    stage_id: str
    stage_name: str
    order: int
    total: int
    done: int
    percentage: int


class ProjectSummaryResponse(CamelModel):
    """Derived display values; stages defaults to an empty array, never null."""

    project_id: str
    spent: float
    budget: float | None = None
    remaining_budget: float | None = None
    budget_usage_percentage: int
    total_subtasks: int
    completed_subtasks: int
    task_progress_percentage: int
    stages: list[StageProgressResponse] = Field(default_factory=list)


class TimelineEntryResponse(CamelModel):
    subtask_id: str
    name: str
    stage_id: str
    status: SubtaskStatus
    start: date
    end: date
    duration_days: int


class TimelineResponse(CamelModel):
    project_id: str
    start: date | None = None
    end: date | None = None
    items: list[TimelineEntryResponse] = Field(default_factory=list)


class ProjectTypeResponse(CamelModel):
    id: str
    name: str
    stages: list[str] = Field(default_factory=list)


class SuggestSubtasksRequest(CamelModel):
    stage_id: str | None = None


class ExecutiveSummaryRequest(CamelModel):
    currency_symbol: str | None = None


class ExecutiveSummaryResponse(CamelModel):
    project_id: str
    executive_summary: str
