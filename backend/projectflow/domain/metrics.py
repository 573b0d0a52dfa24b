"""Deterministic derived values over a Project snapshot.

Pure functions with no external dependencies. Nothing here is stored;
callers recompute on every read.
"""

import math
from dataclasses import dataclass

from projectflow.domain.models import Project, SubtaskStatus


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, matching the client's Math.round."""
    return int(math.floor(value + 0.5))


def calculated_spent(project: Project) -> float:
    """Sum of subtask costs across all stages; missing costs count as 0."""
    return sum(st.cost or 0 for st in project.subtasks)


def completed_subtask_count(project: Project) -> int:
    return sum(1 for st in project.subtasks if st.status == SubtaskStatus.DONE)


def task_progress_percentage(project: Project) -> int:
    """Percentage of subtasks marked Done, 0 for a project without subtasks."""
    total = len(project.subtasks)
    if total == 0:
        return 0
    return round_half_up(100 * completed_subtask_count(project) / total)


def remaining_budget(project: Project) -> float | None:
    if project.budget is None:
        return None
    return project.budget - calculated_spent(project)


def budget_usage_percentage(project: Project) -> int:
    """Spend as a share of budget, capped at 100; 0 without a positive budget."""
    if not project.budget or project.budget <= 0:
        return 0
    return min(100, round_half_up(100 * calculated_spent(project) / project.budget))


@dataclass
class StageProgress:
    """Done/total counts for one stage."""

    stage_id: str
    stage_name: str
    order: int
    total: int
    done: int

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return round_half_up(100 * self.done / self.total)


def stage_progress(project: Project) -> list[StageProgress]:
    """Per-stage completion in stage order."""
    result = []
    for stage in project.sorted_stages():
        members = project.subtasks_in_stage(stage.id)
        result.append(
            StageProgress(
                stage_id=stage.id,
                stage_name=stage.name,
                order=stage.order,
                total=len(members),
                done=sum(1 for st in members if st.status == SubtaskStatus.DONE),
            )
        )
    return result


def project_summary(project: Project) -> dict:
    """Bundle of derived values for display."""
    return {
        "project_id": project.id,
        "spent": calculated_spent(project),
        "budget": project.budget,
        "remaining_budget": remaining_budget(project),
        "budget_usage_percentage": budget_usage_percentage(project),
        "total_subtasks": len(project.subtasks),
        "completed_subtasks": completed_subtask_count(project),
        "task_progress_percentage": task_progress_percentage(project),
        "stages": [
            {
                "stage_id": sp.stage_id,
                "stage_name": sp.stage_name,
                "order": sp.order,
                "total": sp.total,
                "done": sp.done,
                "percentage": sp.percentage,
            }
            for sp in stage_progress(project)
        ],
    }
