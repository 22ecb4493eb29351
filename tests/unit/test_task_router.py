"""Tests for the task HTTP API."""

import pytest
from fastapi.testclient import TestClient

import pairplan.modules.tasks.service as task_service
from pairplan.core.errors import InvariantViolationError
from pairplan.main import app


MONDAY_NOON = "2024-03-04T12:00:00Z"


@pytest.fixture
def client(patched_db) -> TestClient:
    """Test client backed by the in-memory database."""
    return TestClient(app)


def create(client: TestClient, **overrides) -> dict:
    body = {
        "couple_id": "c1",
        "creator_id": "alice",
        "assignee_id": "bob",
        "title": "Water the plants",
        "repeat_frequency": "daily",
        "required_count": 3,
    }
    body.update(overrides)
    response = client.post("/tasks", json=body)
    assert response.status_code == 201, response.text
    return response.json()["task"]


def test_health_endpoint_returns_healthy(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.unit
class TestTaskRoutes:
    """Tests for the /tasks routes."""

    def test_create_returns_task_with_display(self, client):
        response = client.post(
            "/tasks",
            json={"couple_id": "c1", "creator_id": "alice", "title": "Trip", "repeat_frequency": "never"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["task"]["status"] == "recruiting"
        assert body["task"]["required_count"] == 1
        assert body["display"]["task_category"] == "once"
        assert body["display"]["progress_display"] == "Not done"
        assert "data_warnings" not in body["task"]

    def test_invalid_form_is_unprocessable(self, client):
        response = client.post(
            "/tasks",
            json={
                "couple_id": "c1",
                "creator_id": "alice",
                "title": "Read",
                "repeat_frequency": "forever",
                "required_count": 3,
            },
        )

        assert response.status_code == 422

    def test_complete_records_progress(self, client):
        task = create(client)

        response = client.post(f"/tasks/{task['id']}/complete", json={"actor_id": "bob", "at": MONDAY_NOON})

        assert response.status_code == 200
        body = response.json()
        assert body["task"]["completion_record"] == ["2024-03-04"]
        assert body["task"]["current_streak"] == 1
        assert body["display"]["progress_display"] == "1/3 times (33%)"

    def test_complete_by_other_user_is_forbidden(self, client):
        task = create(client)

        response = client.post(f"/tasks/{task['id']}/complete", json={"actor_id": "alice", "at": MONDAY_NOON})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ERR_PERMISSION_DENIED"

    def test_complete_after_abandon_conflicts(self, client):
        task = create(client)
        client.post(f"/tasks/{task['id']}/abandon", json={"actor_id": "bob"})

        response = client.post(f"/tasks/{task['id']}/complete", json={"actor_id": "bob", "at": MONDAY_NOON})

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "ERR_INVALID_STATE_TRANSITION"
        assert error["context"]["current_status"] == "abandoned"

    def test_missing_task_is_not_found(self, client):
        response = client.get("/tasks/424242")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ERR_TASK_NOT_FOUND"

    def test_edit_by_creator(self, client):
        task = create(client)

        response = client.patch(f"/tasks/{task['id']}", json={"actor_id": "alice", "title": "Water the ferns"})

        assert response.status_code == 200
        assert response.json()["task"]["title"] == "Water the ferns"

    def test_edit_by_assignee_is_forbidden(self, client):
        task = create(client)

        response = client.patch(f"/tasks/{task['id']}", json={"actor_id": "bob", "points": 100})

        assert response.status_code == 403

    def test_edit_producing_invalid_form_is_unprocessable(self, client):
        task = create(client)

        response = client.patch(f"/tasks/{task['id']}", json={"actor_id": "alice", "repeat_frequency": "forever"})

        assert response.status_code == 422

    def test_list_assigned_view(self, client):
        mine = create(client)
        create(client, assignee_id=None)

        response = client.get("/tasks", params={"couple_id": "c1", "view": "assigned", "user_id": "bob"})

        assert response.status_code == 200
        assert [item["task"]["id"] for item in response.json()] == [mine["id"]]

    def test_list_with_status_filter(self, client):
        create(client)
        recruiting = create(client, assignee_id=None)

        response = client.get("/tasks", params={"couple_id": "c1", "status": ["recruiting"]})

        assert [item["task"]["id"] for item in response.json()] == [recruiting["id"]]

    def test_stats(self, client):
        create(client)
        create(client, assignee_id=None)

        response = client.get("/tasks/stats", params={"couple_id": "c1", "user_id": "bob"})

        assert response.status_code == 200
        assert response.json()["total"] == 2
        assert response.json()["my_tasks"] == 1

    def test_consistency_and_repair(self, client, patched_db):
        task = create(client)
        patched_db.raw("tasks", task["id"])["completed_count"] = 4

        report = client.get(f"/tasks/{task['id']}/consistency").json()
        repaired = client.post(f"/tasks/{task['id']}/repair", json={}).json()

        assert not report["is_consistent"]
        assert report["stored"]["completed_count"] == 4
        assert report["expected"]["completed_count"] == 0
        assert repaired["task"]["completed_count"] == 0
        assert repaired["display"]["data_warnings"] == []

    def test_write_on_drifted_task_repairs_counters(self, client, patched_db):
        task = create(client)
        patched_db.raw("tasks", task["id"])["completed_count"] = 4

        response = client.post(f"/tasks/{task['id']}/abandon", json={"actor_id": "bob"})

        assert response.status_code == 200
        assert response.json()["task"]["status"] == "abandoned"
        assert response.json()["task"]["completed_count"] == 0

    def test_invariant_violation_maps_to_conflict(self, client, monkeypatch):
        async def inconsistent_write(**_kwargs):
            raise InvariantViolationError(task_id="7", violations=["completed_count is 4 but 0 periods are recorded"])

        monkeypatch.setattr(task_service, "abandon_task", inconsistent_write)

        response = client.post("/tasks/7/abandon", json={"actor_id": "bob"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ERR_INVARIANT_VIOLATION"
