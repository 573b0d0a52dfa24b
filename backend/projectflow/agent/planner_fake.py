"""PlannerFake: Scenario-based test double for the Planner protocol.

Provides deterministic, instant responses for named scenarios:
- happy_path: Realistic suggestions, organization by keyword, templated summary
- empty: Valid but empty answers (no suggestions, no categorization)
- llm_failure: Every call raises, as an overloaded or unreachable API would

All scenarios return instantly (no LLM calls, no delays).
"""

from projectflow.schemas.planning import (
    CategorizedSubtask,
    ExecutiveSummaryInput,
    ExecutiveSummaryOutput,
    OrganizeSubtasksInput,
    OrganizeSubtasksOutput,
    SuggestSubtasksInput,
    SuggestSubtasksOutput,
)

_GENERAL_SUGGESTIONS = [
    "Define project scope and deliverables",
    "Conduct site reconnaissance",
    "Acquire field data",
    "Process and quality-check data",
    "Prepare final report",
]


class PlannerFake:
    """Scenario-based test double for Planner protocol.

    Records every request in ``calls`` so tests can assert on what the
    planning flows sent.
    """

    VALID_SCENARIOS = {"happy_path", "empty", "llm_failure"}

    def __init__(
        self,
        scenario: str = "happy_path",
        suggestions: list[str] | None = None,
        categorization: dict[str, list[dict]] | None = None,
    ):
        """Initialize PlannerFake with a named scenario.

        Args:
            scenario: One of 'happy_path', 'empty', 'llm_failure'
            suggestions: Override the happy_path suggestion list
            categorization: Override the happy_path organize result

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(
                f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}"
            )
        self.scenario = scenario
        self.suggestions = suggestions
        self.categorization = categorization
        self.calls: list[tuple[str, object]] = []

    def _check_failure(self) -> None:
        if self.scenario == "llm_failure":
            raise RuntimeError("Anthropic API rate limit exceeded. Retry after 60 seconds.")

    async def suggest_subtasks(self, request: SuggestSubtasksInput) -> SuggestSubtasksOutput:
        self.calls.append(("suggest_subtasks", request))
        self._check_failure()
        if self.scenario == "empty":
            return SuggestSubtasksOutput(subtasks=[])

        if self.suggestions is not None:
            return SuggestSubtasksOutput(subtasks=list(self.suggestions))
        if request.target_stage_name:
            stage = request.target_stage_name
            return SuggestSubtasksOutput(subtasks=[f"Plan {stage}", f"Execute {stage}", f"Review {stage}"])
        return SuggestSubtasksOutput(subtasks=list(_GENERAL_SUGGESTIONS))

    async def organize_subtasks(self, request: OrganizeSubtasksInput) -> OrganizeSubtasksOutput:
        self.calls.append(("organize_subtasks", request))
        self._check_failure()
        if self.scenario == "empty":
            return OrganizeSubtasksOutput(categorized_subtasks={})

        if self.categorization is not None:
            return OrganizeSubtasksOutput.model_validate({"categorizedSubtasks": self.categorization})

        # Place each subtask in the first stage whose name shares a word with it,
        # falling back to the first stage.
        categorized: dict[str, list[CategorizedSubtask]] = {name: [] for name in request.stages}
        for brief in request.subtasks:
            words = set(brief.name.lower().split())
            stage = next(
                (s for s in request.stages if words & set(s.lower().split())),
                request.stages[0] if request.stages else None,
            )
            if stage is not None:
                categorized[stage].append(CategorizedSubtask(name=brief.name, description=brief.description))
        return OrganizeSubtasksOutput(categorized_subtasks=categorized)

    async def generate_executive_summary(self, request: ExecutiveSummaryInput) -> ExecutiveSummaryOutput:
        self.calls.append(("generate_executive_summary", request))
        self._check_failure()
        if self.scenario == "empty":
            return ExecutiveSummaryOutput(executive_summary="")

        symbol = request.currency_symbol or ""
        summary = (
            f"{request.project_name} is currently {request.status or 'underway'}. "
            f"{request.completed_subtasks} of {request.total_subtasks} subtasks are complete."
        )
        if request.budget is not None:
            summary += f" Spend stands at {symbol}{request.spent or 0:,.2f} against a budget of {symbol}{request.budget:,.2f}."
        return ExecutiveSummaryOutput(executive_summary=summary)
