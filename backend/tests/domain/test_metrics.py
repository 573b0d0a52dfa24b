"""Tests for derived project values (spend, budget usage, progress)."""

import pytest

from factories import make_stage, make_subtask
from projectflow.domain import metrics
from projectflow.domain.models import Project, SubtaskStatus

pytestmark = pytest.mark.unit


def _project(budget=None, subtasks=None, stages=None):
    return Project(id="p", name="P", budget=budget, stages=stages or [make_stage("a", 0)], subtasks=subtasks or [])


class TestRoundHalfUp:
    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (66.666, 67), (33.333, 33)])
    def test_rounds_half_away_from_zero(self, value, expected):
        assert metrics.round_half_up(value) == expected


class TestSpent:
    def test_sums_costs_treating_missing_as_zero(self, survey_project):
        assert metrics.calculated_spent(survey_project) == 150

    def test_empty_project_spends_nothing(self):
        assert metrics.calculated_spent(_project()) == 0


class TestBudgetUsage:
    def test_percentage_of_budget(self, survey_project):
        assert metrics.budget_usage_percentage(survey_project) == 15

    def test_capped_at_100(self):
        project = _project(budget=100, subtasks=[make_subtask("x", "a", 0, cost=250)])
        assert metrics.budget_usage_percentage(project) == 100

    @pytest.mark.parametrize("budget", [None, 0])
    def test_zero_without_positive_budget(self, budget):
        project = _project(budget=budget, subtasks=[make_subtask("x", "a", 0, cost=10)])
        assert metrics.budget_usage_percentage(project) == 0

    def test_remaining_budget(self, survey_project):
        assert metrics.remaining_budget(survey_project) == 850
        assert metrics.remaining_budget(_project()) is None


class TestTaskProgress:
    def test_share_of_done_subtasks(self, survey_project):
        # 2 of 5 done
        assert metrics.task_progress_percentage(survey_project) == 40

    def test_rounds_two_thirds_up(self):
        subtasks = [
            make_subtask("x", "a", 0, status=SubtaskStatus.DONE),
            make_subtask("y", "a", 1, status=SubtaskStatus.DONE),
            make_subtask("z", "a", 2),
        ]
        assert metrics.task_progress_percentage(_project(subtasks=subtasks)) == 67

    def test_zero_without_subtasks(self):
        assert metrics.task_progress_percentage(_project()) == 0


def test_stage_progress_in_stage_order(survey_project):
    progress = metrics.stage_progress(survey_project)

    assert [p.stage_id for p in progress] == ["plan", "field", "report"]
    assert [(p.done, p.total, p.percentage) for p in progress] == [(1, 2, 50), (1, 3, 33), (0, 0, 0)]


def test_project_summary_bundles_values(survey_project):
    summary = metrics.project_summary(survey_project)

    assert summary["spent"] == 150
    assert summary["budget_usage_percentage"] == 15
    assert summary["total_subtasks"] == 5
    assert summary["completed_subtasks"] == 2
    assert summary["task_progress_percentage"] == 40
    assert len(summary["stages"]) == 3


def test_summary_recomputes_after_change(survey_project):
    before = metrics.project_summary(survey_project)["spent"]
    survey_project.subtasks.append(make_subtask("s6", "report", 0, cost=25))
    assert metrics.project_summary(survey_project)["spent"] == before + 25


def test_one_of_four_done_is_25_percent():
    subtasks = [make_subtask(f"t{i}", "a", i, status=SubtaskStatus.DONE if i == 0 else SubtaskStatus.TODO) for i in range(4)]
    assert metrics.task_progress_percentage(_project(subtasks=subtasks)) == 25


def test_spend_with_missing_cost():
    subtasks = [make_subtask("x", "a", 0, cost=100), make_subtask("y", "a", 1), make_subtask("z", "a", 2, cost=50)]
    assert metrics.calculated_spent(_project(subtasks=subtasks)) == 150
