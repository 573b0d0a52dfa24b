"""PlannerReal: Production implementation of the Planner protocol.

Each flow sends one prompt through llm_helpers.create_message (retried on
529), bounded by settings.ai_timeout_seconds, and parses the JSON answer
into its output schema. An answer with no JSON object gets one more try
with a stricter system prompt.
"""

import asyncio
import json
from typing import TypeVar

import anthropic
import structlog
from pydantic import BaseModel

from projectflow.agent.llm_helpers import create_message, parse_planner_json
from projectflow.core.config import get_settings
from projectflow.schemas.planning import (
    ExecutiveSummaryInput,
    ExecutiveSummaryOutput,
    OrganizeSubtasksInput,
    OrganizeSubtasksOutput,
    SuggestSubtasksInput,
    SuggestSubtasksOutput,
)

logger = structlog.get_logger(__name__)

O = TypeVar("O", bound=BaseModel)

PLANNER_SYSTEM = """You are an expert project planner specializing in topographic survey, geotechnical, geophysical, geospatial, construction, and reality scanning projects.

Consider common project phases such as planning, site assessment, mobilization, fieldwork/data acquisition, data processing, analysis, reporting, demobilization and deliverables.

{task_instructions}"""

_STRICT_PREFIX = (
    "IMPORTANT: Your response MUST be valid JSON only. "
    "Do not include any explanation, markdown, or code fences. "
    "Start your response with { .\n\n"
)

SUGGEST_INSTRUCTIONS = """Your response MUST be a JSON object with a single key "subtasks". The value of "subtasks" MUST be an array of strings, where each string is a suggested subtask.
Example format: {"subtasks": ["Develop project charter", "Conduct site visit", "Analyze collected data"]}"""

ORGANIZE_INSTRUCTIONS = """Categorize the given subtasks into the user-defined stages, considering common workflows and dependencies. Use the stage names exactly as given and the subtask names exactly as given. Also suggest an end date (ISO format, YYYY-MM-DD) for each subtask.

Return ONLY a JSON object:
{"categorizedSubtasks": {"<stage name>": [{"name": "...", "description": "...", "endDate": "YYYY-MM-DD"}]}}"""

SUMMARY_INSTRUCTIONS = """Generate a concise and informative executive summary (2-4 paragraphs). The summary should:
1. Briefly introduce the project and its main objectives.
2. Highlight key progress, including task completion and adherence to schedule (if dates are available).
3. Summarize the financial status (budget vs. spent), using the provided currency symbol.
4. Integrate the most important project outcomes (achievements, key findings, challenges, and key recommendations).
5. If relevant, briefly mention key equipment, personnel, or other resources, integrated naturally into the narrative.
6. Conclude with an overall assessment or outlook.

The tone must be professional and suitable for stakeholders.
Return ONLY a JSON object: {"executiveSummary": "..."}"""


def _suggest_prompt(request: SuggestSubtasksInput) -> str:
    lines = [f"Project scope of work: {request.project_description}"]
    if request.target_stage_name:
        lines.append(f'Focus on subtasks relevant to the "{request.target_stage_name}" stage of such a project.')
    else:
        lines.append("Suggest a general list of subtasks needed to complete the project.")
    return "\n\n".join(lines)


def _organize_prompt(request: OrganizeSubtasksInput) -> str:
    subtask_lines = "\n".join(
        f"- Name: {st.name}, Description: {st.description or ''}" for st in request.subtasks
    )
    return (
        f"Project: {request.project_name}\n"
        f"Stages (in order): {', '.join(request.stages)}\n\n"
        f"Subtasks:\n{subtask_lines}"
    )


def _summary_prompt(request: ExecutiveSummaryInput) -> str:
    symbol = request.currency_symbol or ""
    lines = [f"Project Name: {request.project_name}"]
    if request.project_description:
        lines.append(f"Scope of Work: {request.project_description}")
    lines.append(f"Status: {request.status or 'Unknown'}")
    if request.start_date:
        lines.append(f"Start Date: {request.start_date}")
    if request.due_date:
        lines.append(f"Due Date: {request.due_date}")
    if request.budget is not None:
        lines.append(f"Budget: {symbol}{request.budget}")
    if request.spent is not None:
        lines.append(f"Spent: {symbol}{request.spent}")
    lines.append(f"Task Progress: {request.completed_subtasks}/{request.total_subtasks} completed.")

    outcome_labels = {
        "key_findings": "Key Findings",
        "conclusions": "Conclusions",
        "recommendations": "Recommendations",
        "achievements": "Achievements",
        "challenges": "Challenges",
        "lessons_learned": "Lessons Learned",
    }
    outcomes = [
        f"- {label}: {getattr(request.outcomes, field)}"
        for field, label in outcome_labels.items()
        if getattr(request.outcomes, field)
    ]
    if outcomes:
        lines.append("Project Outcomes:\n" + "\n".join(outcomes))
    if request.equipment_list:
        lines.append("Key Equipment Utilized:\n" + "\n".join(f"- {e.name} ({e.model})" for e in request.equipment_list))
    if request.personnel_list:
        lines.append("Key Personnel Involved:\n" + "\n".join(f"- {p.name} - {p.role}" for p in request.personnel_list))
    if request.other_resources_list:
        lines.append("Other Key Resources:\n" + "\n".join(f"- {r}" for r in request.other_resources_list))
    return "\n".join(lines)


class PlannerReal:
    """Production Planner talking to Claude through the Anthropic SDK."""

    def __init__(self, client: anthropic.AsyncAnthropic | None = None, model: str | None = None):
        settings = get_settings()
        self._client = client or anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self._model = model or settings.planner_model
        self._timeout = settings.ai_timeout_seconds
        self._max_tokens = settings.ai_max_tokens

    async def _ask_json(self, operation: str, task_instructions: str, user_content: str, output_model: type[O]) -> O:
        """Call Claude and parse the answer into ``output_model``.

        Retries once with a stricter system prompt when the first answer is
        not valid JSON.
        """
        system = PLANNER_SYSTEM.format(task_instructions=task_instructions)

        async def call(system_prompt: str) -> str:
            return await asyncio.wait_for(
                create_message(
                    self._client,
                    model=self._model,
                    system=system_prompt,
                    prompt=user_content,
                    max_tokens=self._max_tokens,
                ),
                timeout=self._timeout,
            )

        response = await call(system)
        try:
            return parse_planner_json(response, output_model)
        except json.JSONDecodeError:
            logger.warning("planner_json_parse_failed", operation=operation, action="strict_retry")
            response = await call(_STRICT_PREFIX + system)
            return parse_planner_json(response, output_model)

    async def suggest_subtasks(self, request: SuggestSubtasksInput) -> SuggestSubtasksOutput:
        return await self._ask_json(
            "suggest_subtasks", SUGGEST_INSTRUCTIONS, _suggest_prompt(request), SuggestSubtasksOutput
        )

    async def organize_subtasks(self, request: OrganizeSubtasksInput) -> OrganizeSubtasksOutput:
        return await self._ask_json(
            "organize_subtasks", ORGANIZE_INSTRUCTIONS, _organize_prompt(request), OrganizeSubtasksOutput
        )

    async def generate_executive_summary(self, request: ExecutiveSummaryInput) -> ExecutiveSummaryOutput:
        return await self._ask_json(
            "generate_executive_summary", SUMMARY_INSTRUCTIONS, _summary_prompt(request), ExecutiveSummaryOutput
        )
