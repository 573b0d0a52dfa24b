"""Project, Stage and Subtask models.

Persisted with the camelCase keys and human-readable status strings the
browser client has always stored; Python code uses the snake_case names.
"""

from collections.abc import Mapping
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


class ProjectStatus(str, Enum):
    """Project lifecycle status."""

    NOT_STARTED = "Not Started"
    PLANNING = "Planning"
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class SubtaskStatus(str, Enum):
    """Kanban status of a single subtask."""

    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"
    BLOCKED = "Blocked"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @classmethod
    def field_name_for(cls, key: str) -> str | None:
        """Resolve a snake_case name or camelCase alias to the field name."""
        if key in cls.model_fields:
            return key
        for name, info in cls.model_fields.items():
            if info.alias == key:
                return name
        return None

    @classmethod
    def normalize_keys(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        """Map incoming keys onto field names, raising KeyError on unknown keys."""
        normalized = {}
        for key, value in data.items():
            name = cls.field_name_for(key)
            if name is None:
                raise KeyError(key)
            normalized[name] = value
        return normalized

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def coerce_date(value: Any) -> Any:
    # Browser clients send full ISO timestamps for date-only fields
    if isinstance(value, str) and len(value) > 10 and value[10] == "T":
        return value[:10]
    if isinstance(value, datetime):
        return value.date()
    return value


def _require_name(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("Name cannot be empty or whitespace-only")
    return stripped


class EquipmentItem(CamelModel):
    name: str
    model: str = ""


class PersonnelItem(CamelModel):
    name: str
    role: str = ""


class ProjectOutcomes(CamelModel):
    key_findings: str | None = None
    conclusions: str | None = None
    recommendations: str | None = None
    achievements: str | None = None
    challenges: str | None = None
    lessons_learned: str | None = None


class Stage(CamelModel):
    id: str
    name: str
    order: int = Field(..., ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("name")
    @classmethod
    def reject_blank_name(cls, v: str) -> str:
        return _require_name(v)


class SubtaskCore(CamelModel):
    """Caller-editable subtask fields."""

    name: str
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: SubtaskStatus = SubtaskStatus.TODO
    cost: float | None = Field(default=None, ge=0)
    suggested_deadline: date | None = None
    assigned_personnel: int | None = Field(default=None, ge=0)
    location: str | None = None
    field_crew_lead: str | None = None
    equipment_used: str | None = None
    data_deliverables: str | None = None

    @field_validator("name")
    @classmethod
    def reject_blank_name(cls, v: str) -> str:
        return _require_name(v)

    @field_validator("start_date", "end_date", "suggested_deadline", mode="before")
    @classmethod
    def coerce_dates(cls, v: Any) -> Any:
        return coerce_date(v)


class Subtask(SubtaskCore):
    id: str
    stage_id: str
    order: int = Field(..., ge=0)
    created_at: datetime = Field(default_factory=utcnow)


class ProjectFields(CamelModel):
    """Caller-editable project fields (everything except identity and structure)."""

    name: str
    description: str = ""
    status: ProjectStatus = ProjectStatus.NOT_STARTED
    budget: float | None = Field(default=None, ge=0)
    start_date: date | None = None
    due_date: date | None = None
    expected_deliverables: str | None = None
    project_number: str | None = None
    client_contact: str | None = None
    site_address: str | None = None
    coordinate_system: str | None = None
    project_types: list[str] = Field(default_factory=list)
    custom_project_types: list[str] = Field(default_factory=list)
    equipment_list: list[EquipmentItem] = Field(default_factory=list)
    personnel_list: list[PersonnelItem] = Field(default_factory=list)
    other_resources: list[str] = Field(default_factory=list)
    outcomes: ProjectOutcomes | None = None
    user_id: str | None = None

    @field_validator("name")
    @classmethod
    def reject_blank_name(cls, v: str) -> str:
        return _require_name(v)

    @field_validator("start_date", "due_date", mode="before")
    @classmethod
    def coerce_dates(cls, v: Any) -> Any:
        return coerce_date(v)


class Project(ProjectFields):
    id: str
    created_at: datetime = Field(default_factory=utcnow)
    stages: list[Stage] = Field(default_factory=list)
    subtasks: list[Subtask] = Field(default_factory=list)

    def get_stage(self, stage_id: str) -> Stage | None:
        return next((s for s in self.stages if s.id == stage_id), None)

    def get_subtask(self, subtask_id: str) -> Subtask | None:
        return next((st for st in self.subtasks if st.id == subtask_id), None)

    def sorted_stages(self) -> list[Stage]:
        return sorted(self.stages, key=lambda s: (s.order, s.created_at))

    def subtasks_in_stage(self, stage_id: str) -> list[Subtask]:
        """Subtasks of one stage in display order."""
        group = [st for st in self.subtasks if st.stage_id == stage_id]
        return sorted(group, key=lambda st: (st.order, st.created_at))
