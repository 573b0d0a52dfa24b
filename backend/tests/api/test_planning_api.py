"""HTTP-level tests for the AI planning routes (PlannerFake injected)."""

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.unit


@pytest.fixture
def project(api_client: TestClient) -> dict:
    response = api_client.post(
        "/api/projects/",
        json={"name": "Quay Wall", "description": "Monitoring of the quay wall", "projectTypes": ["construction-monitoring"]},
    )
    return response.json()


def test_suggest_defaults_to_first_stage(api_client: TestClient, project, planner):
    response = api_client.post(f"/api/projects/{project['id']}/ai/suggest", json={})

    assert response.status_code == 200
    created = response.json()
    assert len(created) == 5
    assert {st["stageId"] for st in created} == {project["stages"][0]["id"]}


def test_suggest_for_chosen_stage(api_client: TestClient, project):
    stage = project["stages"][2]

    response = api_client.post(f"/api/projects/{project['id']}/ai/suggest", json={"stageId": stage["id"]})

    assert [st["name"] for st in response.json()][0] == f"Plan {stage['name']}"


def test_suggest_without_scope_is_422(api_client: TestClient, project):
    api_client.patch(f"/api/projects/{project['id']}", json={"description": ""})

    response = api_client.post(f"/api/projects/{project['id']}/ai/suggest", json={})

    assert response.status_code == 422
    assert response.json()["field"] == "description"


def test_planner_failure_is_502_and_nothing_changes(api_client: TestClient, project, planner):
    planner.scenario = "llm_failure"

    response = api_client.post(f"/api/projects/{project['id']}/ai/suggest", json={})

    assert response.status_code == 502
    assert api_client.get(f"/api/projects/{project['id']}").json()["subtasks"] == []


def test_organize_returns_full_subtask_list(api_client: TestClient, project):
    stages = project["stages"]
    api_client.post(
        f"/api/projects/{project['id']}/stages/{stages[0]['id']}/subtasks/batch",
        json={"subtasks": [{"name": "Reporting dashboard"}, {"name": "Install prisms"}]},
    )

    response = api_client.post(f"/api/projects/{project['id']}/ai/organize")

    assert response.status_code == 200
    by_name = {st["name"]: st for st in response.json()}
    reporting = next(s for s in stages if s["name"] == "Reporting & Alerting")
    assert by_name["Reporting dashboard"]["stageId"] == reporting["id"]
    assert by_name["Install prisms"]["stageId"] == stages[0]["id"]


def test_summary_not_stored(api_client: TestClient, project, api_blob_store):
    writes = len(api_blob_store.writes)

    response = api_client.post(f"/api/projects/{project['id']}/ai/summary", json={"currencySymbol": "£"})

    assert response.status_code == 200
    assert response.json()["projectId"] == project["id"]
    assert "Quay Wall" in response.json()["executiveSummary"]
    assert len(api_blob_store.writes) == writes


def test_summary_unknown_project_is_404(api_client: TestClient):
    response = api_client.post("/api/projects/ghost/ai/summary", json={})
    assert response.status_code == 404
