"""Merge an AI stage categorization back into the existing subtask list.

Pure function -- no side effects, no store access.

Matching is by exact name, first unassigned match wins, in the order the
subtasks appear in the project. Duplicate names are therefore resolved
first-come-first-served; no fuzzy matching is attempted.
"""

from collections import defaultdict
from collections.abc import Mapping, Sequence

import structlog

from projectflow.domain.models import Stage, Subtask
from projectflow.domain.ordering import sort_key
from projectflow.schemas.planning import CategorizedSubtask

logger = structlog.get_logger(__name__)


def _resolve_stage(stages: Sequence[Stage], name: str) -> Stage | None:
    """Exact name match; the lowest-ordered stage wins when names repeat."""
    return next((s for s in sorted(stages, key=sort_key) if s.name == name), None)


def reconcile_categorization(
    stages: Sequence[Stage],
    subtasks: Sequence[Subtask],
    categorized: Mapping[str, Sequence[CategorizedSubtask]],
) -> list[Subtask]:
    """Apply an AI categorization to ``subtasks``.

    Args:
        stages: The project's stages
        subtasks: The project's current subtasks
        categorized: Stage name -> AI-ordered list of placed subtasks

    Returns:
        The full new subtask list: reassigned subtasks first (in AI order),
        then every untouched subtask appended to its original stage with its
        relative order preserved. Orders are dense per stage.

    Rules:
        - Stage names that match no existing stage are dropped entirely
        - AI items that match no unassigned subtask are ignored (never created)
        - AI description and deadline replace existing values when present
    """
    unassigned: dict[str, Subtask] = {st.id: st for st in subtasks}
    placed: list[Subtask] = []
    next_position: dict[str, int] = defaultdict(int)
    dropped_stages = 0
    ignored_items = 0

    for stage_name, ai_items in categorized.items():
        stage = _resolve_stage(stages, stage_name)
        if stage is None:
            dropped_stages += 1
            continue

        for ai_item in ai_items:
            match = next((st for st in unassigned.values() if st.name == ai_item.name), None)
            if match is None:
                ignored_items += 1
                continue

            update: dict = {"stage_id": stage.id, "order": next_position[stage.id]}
            if ai_item.description:
                update["description"] = ai_item.description
            if ai_item.suggested_deadline:
                update["suggested_deadline"] = ai_item.suggested_deadline
            placed.append(match.model_copy(update=update))
            next_position[stage.id] += 1
            del unassigned[match.id]

    for st in sorted(unassigned.values(), key=lambda s: (s.stage_id, *sort_key(s))):
        placed.append(st.model_copy(update={"order": next_position[st.stage_id]}))
        next_position[st.stage_id] += 1

    logger.debug(
        "categorization_reconciled",
        reassigned=len(subtasks) - len(unassigned),
        untouched=len(unassigned),
        dropped_stages=dropped_stages,
        ignored_items=ignored_items,
    )
    return placed
