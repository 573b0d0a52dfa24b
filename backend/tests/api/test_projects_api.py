"""HTTP-level tests for project, stage and subtask routes.

Responses use the camelCase persisted shape; errors carry a debug_id.
"""

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.unit


def _create_project(client: TestClient, **fields) -> dict:
    body = {"name": "Harbour Survey", "description": "Topographic survey", "budget": 1000, **fields}
    response = client.post("/api/projects/", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def _add_stage(client: TestClient, project_id: str, name: str) -> dict:
    response = client.post(f"/api/projects/{project_id}/stages", json={"name": name})
    assert response.status_code == 201, response.text
    return response.json()


def _add_subtask(client: TestClient, project_id: str, stage_id: str, name: str, **fields) -> dict:
    response = client.post(f"/api/projects/{project_id}/stages/{stage_id}/subtasks", json={"name": name, **fields})
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# HEALTH
# =============================================================================


def test_health(api_client: TestClient):
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_ready_when_store_initialized(api_client: TestClient):
    response = api_client.get("/api/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["store"] is True


def test_correlation_id_echoed(api_client: TestClient):
    response = api_client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


# =============================================================================
# PROJECTS
# =============================================================================


def test_create_project_with_template_stages(api_client: TestClient):
    project = _create_project(api_client, projectTypes=["construction-monitoring"])

    assert [s["order"] for s in project["stages"]] == [0, 1, 2, 3, 4]
    assert project["status"] == "Not Started"
    assert project["subtasks"] == []


def test_create_project_without_templates(api_client: TestClient):
    response = api_client.post(
        "/api/projects/?apply_templates=false",
        json={"name": "Quarry", "projectTypes": ["construction-monitoring"]},
    )
    assert response.status_code == 201
    assert response.json()["stages"] == []


def test_create_project_blank_name_is_422(api_client: TestClient, api_blob_store):
    response = api_client.post("/api/projects/", json={"name": "   "})
    assert response.status_code == 422
    assert api_blob_store.writes == []


def test_list_get_patch_delete(api_client: TestClient):
    project = _create_project(api_client)
    project_id = project["id"]

    assert [p["id"] for p in api_client.get("/api/projects/").json()] == [project_id]

    patched = api_client.patch(f"/api/projects/{project_id}", json={"status": "In Progress", "siteAddress": "Pier 4"})
    assert patched.status_code == 200
    assert patched.json()["status"] == "In Progress"
    assert patched.json()["siteAddress"] == "Pier 4"

    assert api_client.delete(f"/api/projects/{project_id}").status_code == 204
    assert api_client.get(f"/api/projects/{project_id}").status_code == 404


def test_patch_unknown_field_is_422_with_field(api_client: TestClient):
    project = _create_project(api_client)

    response = api_client.patch(f"/api/projects/{project['id']}", json={"colour": "red"})

    assert response.status_code == 422
    assert response.json()["field"] == "colour"
    assert "debug_id" in response.json()


def test_unknown_project_is_404_with_debug_id(api_client: TestClient):
    response = api_client.get("/api/projects/ghost")
    assert response.status_code == 404
    assert "debug_id" in response.json()


def test_project_types_listed_with_stages(api_client: TestClient):
    types = {t["id"]: t for t in api_client.get("/api/projects/types").json()}
    assert types["none"]["stages"] == []
    assert len(types["reality-scan"]["stages"]) == 6


# =============================================================================
# STAGES AND SUBTASKS
# =============================================================================


def test_stage_lifecycle_with_cascade(api_client: TestClient):
    project_id = _create_project(api_client)["id"]
    first = _add_stage(api_client, project_id, "Planning")
    second = _add_stage(api_client, project_id, "Fieldwork")
    _add_subtask(api_client, project_id, first["id"], "Write proposal")

    assert second["order"] == 1
    assert api_client.delete(f"/api/projects/{project_id}/stages/{first['id']}").status_code == 204

    project = api_client.get(f"/api/projects/{project_id}").json()
    assert [(s["id"], s["order"]) for s in project["stages"]] == [(second["id"], 0)]
    assert project["subtasks"] == []


def test_reorder_stage_to_end(api_client: TestClient):
    project_id = _create_project(api_client)["id"]
    a = _add_stage(api_client, project_id, "A")
    b = _add_stage(api_client, project_id, "B")

    response = api_client.post(f"/api/projects/{project_id}/stages/{a['id']}/reorder", json={"targetStageId": None})

    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == [b["id"], a["id"]]


def test_move_subtask_between_stages(api_client: TestClient):
    project_id = _create_project(api_client)["id"]
    plan = _add_stage(api_client, project_id, "Planning")
    field = _add_stage(api_client, project_id, "Fieldwork")
    moving = _add_subtask(api_client, project_id, plan["id"], "Recce")
    _add_subtask(api_client, project_id, field["id"], "Scan")

    response = api_client.post(
        f"/api/projects/{project_id}/subtasks/{moving['id']}/move",
        json={"targetStageId": field["id"], "targetOrder": 0},
    )

    assert response.status_code == 200
    assert (response.json()["stageId"], response.json()["order"]) == (field["id"], 0)
    stages = api_client.get(f"/api/projects/{project_id}/stages").json()
    assert [s["name"] for s in stages] == ["Planning", "Fieldwork"]


def test_move_to_foreign_stage_is_404(api_client: TestClient):
    project_id = _create_project(api_client)["id"]
    stage = _add_stage(api_client, project_id, "Planning")
    subtask = _add_subtask(api_client, project_id, stage["id"], "Recce")

    response = api_client.post(
        f"/api/projects/{project_id}/subtasks/{subtask['id']}/move",
        json={"targetStageId": "ghost", "targetOrder": 0},
    )

    assert response.status_code == 404


def test_batch_add_and_clear_stage(api_client: TestClient):
    project_id = _create_project(api_client)["id"]
    stage = _add_stage(api_client, project_id, "Fieldwork")

    created = api_client.post(
        f"/api/projects/{project_id}/stages/{stage['id']}/subtasks/batch",
        json={"subtasks": [{"name": "Scan"}, {"name": "Fly drone"}]},
    )
    assert [st["order"] for st in created.json()] == [0, 1]

    cleared = api_client.delete(f"/api/projects/{project_id}/stages/{stage['id']}/subtasks")
    assert cleared.json() == {"count": 2}


def test_bulk_replace_with_gap_is_422(api_client: TestClient):
    project_id = _create_project(api_client)["id"]
    stage = _add_stage(api_client, project_id, "Fieldwork")
    subtask = _add_subtask(api_client, project_id, stage["id"], "Scan")

    response = api_client.put(f"/api/projects/{project_id}/subtasks", json=[{**subtask, "order": 3}])

    assert response.status_code == 422
    assert response.json()["group"] == stage["id"]


def test_summary_and_timeline(api_client: TestClient):
    project_id = _create_project(api_client)["id"]
    stage = _add_stage(api_client, project_id, "Fieldwork")
    done = _add_subtask(
        api_client, project_id, stage["id"], "Scan", cost=250, startDate="2024-05-01", endDate="2024-05-03"
    )
    _add_subtask(api_client, project_id, stage["id"], "Report", cost=50)
    api_client.patch(f"/api/projects/{project_id}/subtasks/{done['id']}", json={"status": "Done"})

    summary = api_client.get(f"/api/projects/{project_id}/summary").json()
    assert summary["spent"] == 300
    assert summary["budgetUsagePercentage"] == 30
    assert summary["taskProgressPercentage"] == 50
    assert summary["stages"][0]["percentage"] == 50

    timeline = api_client.get(f"/api/projects/{project_id}/timeline").json()
    assert [item["name"] for item in timeline["items"]] == ["Scan"]
    assert timeline["items"][0]["durationDays"] == 3
    assert timeline["start"] == "2024-05-01"


def test_complete_all(api_client: TestClient):
    project_id = _create_project(api_client)["id"]
    stage = _add_stage(api_client, project_id, "Fieldwork")
    _add_subtask(api_client, project_id, stage["id"], "Scan")

    response = api_client.post(f"/api/projects/{project_id}/complete-all")

    assert response.json() == {"count": 1}
    summary = api_client.get(f"/api/projects/{project_id}/summary").json()
    assert summary["taskProgressPercentage"] == 100
