"""PlanningService: AI-assisted subtask suggestion, organization and summaries.

Each flow snapshots the project from the store, calls the Planner outside the
store lock, then writes the result back through the store in one mutation.
Planner failures surface as ExternalCallFailure and leave the project untouched.
Two flows in flight for the same project resolve last-writer-wins; an organize
result is reconciled against the subtasks current when it is applied.
"""

import structlog

from projectflow.agent.planner import Planner
from projectflow.core.exceptions import ExternalCallFailure, NotFoundError, ValidationError
from projectflow.domain import metrics
from projectflow.domain.models import Project, Subtask, SubtaskStatus
from projectflow.schemas.planning import (
    ExecutiveSummaryInput,
    OrganizeSubtasksInput,
    SubtaskBrief,
    SuggestSubtasksInput,
)
from projectflow.services.project_store import ProjectStore

logger = structlog.get_logger(__name__)


class PlanningService:
    """Runs the three AI planning flows against a ProjectStore.

    Uses dependency injection (takes a Planner and a ProjectStore) for testability.
    """

    def __init__(self, planner: Planner, store: ProjectStore):
        self.planner = planner
        self.store = store

    def _require_project(self, project_id: str) -> Project:
        project = self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def _call(self, operation: str, project_id: str, coro):
        try:
            return await coro
        except Exception as e:
            logger.warning(
                "planner_call_failed",
                operation=operation,
                project_id=project_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExternalCallFailure(f"AI {operation} failed: {e}") from e

    async def suggest_subtasks(self, project_id: str, stage_id: str | None = None) -> list[Subtask]:
        """Ask the planner for subtasks and append them to one stage.

        Args:
            project_id: Project to plan
            stage_id: Target stage; defaults to the first stage by order. Only an
                explicitly chosen stage's name is sent to the planner.

        Returns:
            The created subtasks (empty when the planner suggested nothing)

        Raises:
            NotFoundError: Unknown project or stage
            ValidationError: Project has no scope of work or no stages
            ExternalCallFailure: Planner call failed
        """
        project = self._require_project(project_id)
        if not project.description.strip():
            raise ValidationError("Project scope of work is needed for AI suggestions", field="description")
        if not project.stages:
            raise ValidationError("Add at least one stage before suggesting subtasks", field="stages")

        if stage_id is None:
            target = project.sorted_stages()[0]
            target_name = None
        else:
            target = project.get_stage(stage_id)
            if target is None:
                raise NotFoundError("Stage", stage_id)
            target_name = target.name

        result = await self._call(
            "suggest_subtasks",
            project_id,
            self.planner.suggest_subtasks(
                SuggestSubtasksInput(project_description=project.description, target_stage_name=target_name)
            ),
        )

        created = await self.store.add_multiple_subtasks(
            project_id,
            target.id,
            [{"name": name, "status": SubtaskStatus.TODO} for name in result.subtasks],
        )
        if created is None:
            # Project or stage was deleted while the planner was thinking
            raise NotFoundError("Stage", target.id)

        logger.info("ai_subtasks_suggested", project_id=project_id, stage_id=target.id, count=len(created))
        return created

    async def organize_subtasks(self, project_id: str) -> list[Subtask]:
        """Let the planner regroup existing subtasks across the project's stages.

        Returns:
            The project's full subtask list after reconciliation

        Raises:
            NotFoundError: Unknown project
            ValidationError: Project has no stages or no subtasks
            ExternalCallFailure: Planner call failed
        """
        project = self._require_project(project_id)
        if not project.stages or not project.subtasks:
            raise ValidationError("Project, stages, and subtasks are needed for AI organization")

        result = await self._call(
            "organize_subtasks",
            project_id,
            self.planner.organize_subtasks(
                OrganizeSubtasksInput(
                    project_name=project.name,
                    stages=[s.name for s in project.sorted_stages()],
                    subtasks=[SubtaskBrief(name=st.name, description=st.description) for st in project.subtasks],
                )
            ),
        )

        # Reconciled inside the store against the latest state, not the snapshot sent to the planner
        replaced = await self.store.apply_categorization(project_id, result.categorized_subtasks)
        if replaced is None:
            raise NotFoundError("Project", project_id)

        logger.info("ai_subtasks_organized", project_id=project_id, count=len(replaced))
        return replaced

    def build_summary_input(self, project: Project, currency_symbol: str | None = None) -> ExecutiveSummaryInput:
        """Collect the facts the planner needs for an executive summary."""
        return ExecutiveSummaryInput(
            project_name=project.name,
            project_description=project.description or None,
            status=project.status.value,
            start_date=project.start_date.isoformat() if project.start_date else None,
            due_date=project.due_date.isoformat() if project.due_date else None,
            budget=project.budget,
            spent=metrics.calculated_spent(project),
            currency_symbol=currency_symbol,
            total_subtasks=len(project.subtasks),
            completed_subtasks=metrics.completed_subtask_count(project),
            outcomes=project.outcomes or {},
            equipment_list=project.equipment_list,
            personnel_list=project.personnel_list,
            other_resources_list=project.other_resources,
        )

    async def generate_executive_summary(self, project_id: str, currency_symbol: str | None = None) -> str:
        """Draft an executive summary. Nothing is stored.

        Raises:
            NotFoundError: Unknown project
            ExternalCallFailure: Planner call failed
        """
        project = self._require_project(project_id)
        result = await self._call(
            "generate_executive_summary",
            project_id,
            self.planner.generate_executive_summary(self.build_summary_input(project, currency_symbol)),
        )
        return result.executive_summary
