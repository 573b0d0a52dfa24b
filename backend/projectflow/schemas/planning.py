"""Planning Pydantic schemas: input/output contracts for the AI planner flows."""

from datetime import date
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from projectflow.domain.models import CamelModel, EquipmentItem, PersonnelItem, ProjectOutcomes, coerce_date


class SuggestSubtasksInput(CamelModel):
    """Scope of work plus an optional stage to focus suggestions on."""

    project_description: str
    target_stage_name: str | None = None


class SuggestSubtasksOutput(CamelModel):
    subtasks: list[str] = Field(default_factory=list)

    @field_validator("subtasks")
    @classmethod
    def drop_blank_names(cls, v: list[str]) -> list[str]:
        """LLMs occasionally emit empty strings; they can never become subtasks."""
        return [name.strip() for name in v if name and name.strip()]


class SubtaskBrief(CamelModel):
    name: str
    description: str | None = None


class OrganizeSubtasksInput(CamelModel):
    project_name: str
    stages: list[str]
    subtasks: list[SubtaskBrief]


class CategorizedSubtask(CamelModel):
    """One AI-placed subtask. ``endDate`` is accepted for the deadline."""

    name: str
    description: str | None = None
    suggested_deadline: date | None = Field(
        default=None,
        validation_alias=AliasChoices("suggestedDeadline", "suggested_deadline", "endDate", "end_date"),
    )

    @field_validator("suggested_deadline", mode="before")
    @classmethod
    def coerce_deadline(cls, v: Any) -> Any:
        if v == "":
            return None
        return coerce_date(v)


class OrganizeSubtasksOutput(CamelModel):
    categorized_subtasks: dict[str, list[CategorizedSubtask]] = Field(default_factory=dict)


class ExecutiveSummaryInput(CamelModel):
    project_name: str
    project_description: str | None = None
    status: str | None = None
    start_date: str | None = None
    due_date: str | None = None
    budget: float | None = None
    spent: float | None = None
    currency_symbol: str | None = None
    total_subtasks: int
    completed_subtasks: int
    outcomes: ProjectOutcomes = Field(default_factory=ProjectOutcomes)
    equipment_list: list[EquipmentItem] = Field(default_factory=list)
    personnel_list: list[PersonnelItem] = Field(default_factory=list)
    other_resources_list: list[str] = Field(default_factory=list)


class ExecutiveSummaryOutput(CamelModel):
    executive_summary: str
