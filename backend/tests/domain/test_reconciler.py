"""Tests for merging an AI categorization into the subtask list."""

from datetime import date

import pytest

from factories import make_stage, make_subtask
from projectflow.domain.ordering import is_dense
from projectflow.domain.reconciler import reconcile_categorization
from projectflow.schemas.planning import OrganizeSubtasksOutput

pytestmark = pytest.mark.unit


def _categorized(payload: dict) -> dict:
    return OrganizeSubtasksOutput.model_validate({"categorizedSubtasks": payload}).categorized_subtasks


@pytest.fixture
def stages():
    return [make_stage("a", 0, "Planning"), make_stage("b", 1, "Fieldwork")]


def test_reassigns_in_ai_order_with_dense_orders(stages):
    subtasks = [make_subtask("x", "a", 0, "Scan"), make_subtask("y", "a", 1, "Drill")]

    result = reconcile_categorization(stages, subtasks, _categorized({"Fieldwork": [{"name": "Drill"}, {"name": "Scan"}]}))

    by_id = {st.id: st for st in result}
    assert (by_id["y"].stage_id, by_id["y"].order) == ("b", 0)
    assert (by_id["x"].stage_id, by_id["x"].order) == ("b", 1)


def test_unknown_stage_is_dropped_and_untouched_subtasks_keep_place(stages):
    subtasks = [make_subtask("x", "a", 0, "Scan"), make_subtask("y", "a", 1, "Drill")]

    result = reconcile_categorization(stages, subtasks, _categorized({"Imaginary": [{"name": "Scan"}]}))

    assert [(st.id, st.stage_id, st.order) for st in result] == [("x", "a", 0), ("y", "a", 1)]


def test_every_subtask_survives_exactly_once(stages):
    subtasks = [
        make_subtask("x", "a", 0, "Scan"),
        make_subtask("y", "a", 1, "Drill"),
        make_subtask("z", "b", 0, "Report"),
    ]

    result = reconcile_categorization(
        stages,
        subtasks,
        _categorized({"Planning": [{"name": "Report"}, {"name": "Nonexistent"}], "Fieldwork": [{"name": "Scan"}]}),
    )

    assert sorted(st.id for st in result) == ["x", "y", "z"]
    assert is_dense(result, "stage_id")


def test_untouched_subtasks_follow_reassigned_ones_in_relative_order(stages):
    subtasks = [
        make_subtask("x", "a", 0, "Scan"),
        make_subtask("y", "a", 1, "Drill"),
        make_subtask("z", "a", 2, "Log"),
    ]

    result = reconcile_categorization(stages, subtasks, _categorized({"Planning": [{"name": "Log"}]}))

    by_id = {st.id: st.order for st in result}
    assert by_id == {"z": 0, "x": 1, "y": 2}


def test_duplicate_names_match_first_unassigned(stages):
    subtasks = [make_subtask("x1", "a", 0, "Survey"), make_subtask("x2", "a", 1, "Survey")]

    result = reconcile_categorization(stages, subtasks, _categorized({"Fieldwork": [{"name": "Survey"}]}))

    by_id = {st.id: st for st in result}
    assert by_id["x1"].stage_id == "b"
    assert (by_id["x2"].stage_id, by_id["x2"].order) == ("a", 0)


def test_description_and_deadline_override_only_when_present(stages):
    subtasks = [
        make_subtask("x", "a", 0, "Scan", description="old"),
        make_subtask("y", "a", 1, "Drill", description="keep me"),
    ]

    result = reconcile_categorization(
        stages,
        subtasks,
        _categorized({
            "Fieldwork": [
                {"name": "Scan", "description": "Laser scan the quay", "endDate": "2024-05-01"},
                {"name": "Drill", "description": ""},
            ]
        }),
    )

    by_id = {st.id: st for st in result}
    assert by_id["x"].description == "Laser scan the quay"
    assert by_id["x"].suggested_deadline == date(2024, 5, 1)
    assert by_id["y"].description == "keep me"
    assert by_id["y"].suggested_deadline is None


def test_repeated_stage_name_resolves_to_lowest_order():
    stages = [make_stage("later", 1, "QC"), make_stage("first", 0, "QC")]
    subtasks = [make_subtask("x", "later", 0, "Check")]

    result = reconcile_categorization(stages, subtasks, _categorized({"QC": [{"name": "Check"}]}))

    assert result[0].stage_id == "first"


def test_inputs_are_not_mutated(stages):
    subtasks = [make_subtask("x", "a", 0, "Scan")]
    reconcile_categorization(stages, subtasks, _categorized({"Fieldwork": [{"name": "Scan"}]}))
    assert subtasks[0].stage_id == "a"


def test_empty_categorization_keeps_everything(stages):
    subtasks = [make_subtask("x", "a", 0, "Scan"), make_subtask("z", "b", 0, "Report")]
    result = reconcile_categorization(stages, subtasks, {})
    assert [(st.id, st.stage_id, st.order) for st in result] == [("x", "a", 0), ("z", "b", 0)]


def test_moves_matched_subtask_and_drops_unknown_suggestion():
    stages = [make_stage("X", 0, "Stage1"), make_stage("Y", 1, "Stage2")]
    subtasks = [make_subtask("1", "X", 0, "A"), make_subtask("2", "X", 1, "B")]

    result = reconcile_categorization(stages, subtasks, _categorized({"Stage2": [{"name": "B"}, {"name": "C"}]}))

    by_id = {st.id: st for st in result}
    assert (by_id["2"].stage_id, by_id["2"].order) == ("Y", 0)
    assert (by_id["1"].stage_id, by_id["1"].order) == ("X", 0)
    assert len(result) == 2
