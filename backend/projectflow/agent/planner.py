"""Planner Protocol: the testable abstraction for all LLM operations.

Decouples the planning flows from the model backend. All Planner
implementations MUST provide these 3 methods:
- suggest_subtasks: Propose subtask names from a scope of work
- organize_subtasks: Categorize existing subtasks into the project's stages
- generate_executive_summary: Draft a stakeholder summary of a project
"""

from typing import Protocol, runtime_checkable

from projectflow.schemas.planning import (
    ExecutiveSummaryInput,
    ExecutiveSummaryOutput,
    OrganizeSubtasksInput,
    OrganizeSubtasksOutput,
    SuggestSubtasksInput,
    SuggestSubtasksOutput,
)


@runtime_checkable
class Planner(Protocol):
    """Protocol for the AI collaborator behind the planning flows.

    This abstraction enables:
    1. Deterministic test doubles (PlannerFake)
    2. Swapping the model provider without touching the flows
    3. Testing the reconciliation logic without invoking LLMs
    """

    async def suggest_subtasks(self, request: SuggestSubtasksInput) -> SuggestSubtasksOutput:
        """Propose subtask names for a project, optionally for one stage.

        Args:
            request: Scope of work and optional target stage name

        Returns:
            Suggested subtask names; an empty list is valid
        """
        ...

    async def organize_subtasks(self, request: OrganizeSubtasksInput) -> OrganizeSubtasksOutput:
        """Categorize subtasks into the given stage names.

        Args:
            request: Project name, stage names in order, subtask briefs

        Returns:
            Stage name -> ordered list of placed subtasks with optional deadlines
        """
        ...

    async def generate_executive_summary(self, request: ExecutiveSummaryInput) -> ExecutiveSummaryOutput:
        """Write a 2-4 paragraph executive summary.

        Args:
            request: Project facts, progress counts, outcomes and resources

        Returns:
            The summary text
        """
        ...
