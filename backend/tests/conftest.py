"""Shared test fixtures for all test groups."""

import pytest

from factories import RecordingBlobStore, make_survey_project
from projectflow.agent.planner_fake import PlannerFake
from projectflow.services.project_store import ProjectStore


@pytest.fixture
def blob_store():
    """Empty in-memory blob store that records writes."""
    return RecordingBlobStore()


@pytest.fixture
def store(blob_store):
    """ProjectStore in strict ordering mode over an in-memory blob store."""
    return ProjectStore(blob_store, storage_key="projects", strict_ordering_checks=True)


@pytest.fixture
def planner_fake():
    """Fresh PlannerFake with happy_path scenario (default)."""
    return PlannerFake(scenario="happy_path")


@pytest.fixture
def planner_fake_failing():
    """PlannerFake with llm_failure scenario."""
    return PlannerFake(scenario="llm_failure")


@pytest.fixture
def survey_project():
    return make_survey_project()
