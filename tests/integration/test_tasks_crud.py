"""
Integration tests for the task CRUD endpoints.

Each test class maps to one HTTP verb and covers happy path, not-found,
authentication and validation scenarios.  Deletion is also checked for
its lock cascade.

Key Concepts Demonstrated:
- REST CRUD testing through the Flask test client
- HTTP status-code verification (200, 201, 400, 401, 404)
- Parametrized validation cases
- Fixture composition (sample_task, task_factory, coordinator)
"""

from __future__ import annotations

import pytest

from tests.helpers import auth_headers

pytestmark = pytest.mark.integration


class TestHealth:
    def test_health_is_public(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"


class TestGetTasks:
    """Tests for the GET /api/tasks listing endpoint."""

    def test_returns_empty_list_when_no_tasks(self, client, db_session):
        response = client.get("/api/tasks")

        assert response.status_code == 200
        assert response.get_json() == {"tasks": [], "count": 0}

    def test_lists_tasks_newest_update_first_without_auth(self, client, task_factory):
        first = task_factory(title="First")
        second = task_factory(title="Second")

        response = client.get("/api/tasks")

        assert response.status_code == 200
        data = response.get_json()
        assert data["count"] == 2
        assert [task["id"] for task in data["tasks"]] == [second.id, first.id]

    def test_get_single_task(self, client, sample_task, sample_user):
        response = client.get(f"/api/tasks/{sample_task.id}")

        assert response.status_code == 200
        data = response.get_json()
        assert data["title"] == "Sample Task"
        assert data["editor"]["name"] == sample_user.name

    def test_get_missing_task_returns_404(self, client, db_session):
        response = client.get("/api/tasks/9999")

        assert response.status_code == 404
        assert response.get_json()["error"] == "Task not found"


class TestCreateTask:
    """Tests for POST /api/tasks."""

    def test_create_task_records_editor(self, client, api_headers, sample_user):
        response = client.post(
            "/api/tasks", json={"title": "New", "body": "Body text"}, headers=api_headers
        )

        assert response.status_code == 201
        data = response.get_json()
        assert data["id"] is not None
        assert data["title"] == "New"
        assert data["last_edited_by"] == sample_user.id

    def test_create_requires_authentication(self, client, db_session):
        response = client.post("/api/tasks", json={"title": "New", "body": "Body"})

        assert response.status_code == 401

    @pytest.mark.parametrize(
        "payload, error",
        [
            ({"body": "no title"}, "'title' is required"),
            ({"title": "no body"}, "'body' is required"),
            ({"title": "   ", "body": "x"}, "'title' is required"),
            ({"title": "x" * 201, "body": "x"}, "Title must be 200 characters or less"),
            ({"title": 5, "body": "x"}, "'title' is required"),
        ],
    )
    def test_create_validation(self, client, api_headers, payload, error):
        response = client.post("/api/tasks", json=payload, headers=api_headers)

        assert response.status_code == 400
        assert response.get_json()["error"] == error

    def test_create_rejects_non_json_body(self, client, api_headers):
        response = client.post("/api/tasks", data="plain text", headers=api_headers)

        assert response.status_code == 400
        assert response.get_json()["error"] == "Request body must be JSON"


class TestUpdateTask:
    """Tests for PUT/PATCH /api/tasks/<id>."""

    @pytest.mark.parametrize("method", ["put", "patch"])
    def test_partial_update_changes_only_given_fields(
        self, client, sample_task, api_headers, method
    ):
        response = getattr(client, method)(
            f"/api/tasks/{sample_task.id}", json={"body": "Rewritten"}, headers=api_headers
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["title"] == "Sample Task"
        assert data["body"] == "Rewritten"

    def test_update_sets_last_editor_to_caller(
        self, client, sample_task, user_factory, token_for
    ):
        bob = user_factory(name="Bob")

        response = client.patch(
            f"/api/tasks/{sample_task.id}",
            json={"title": "Bob was here"},
            headers=auth_headers(token_for(bob)),
        )

        assert response.status_code == 200
        assert response.get_json()["editor"]["id"] == bob.id

    def test_update_missing_task_returns_404(self, client, api_headers):
        response = client.patch("/api/tasks/9999", json={"title": "x"}, headers=api_headers)

        assert response.status_code == 404

    def test_update_rejects_blank_body(self, client, sample_task, api_headers):
        response = client.patch(
            f"/api/tasks/{sample_task.id}", json={"body": ""}, headers=api_headers
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "'body' must be a non-empty string"


class TestDeleteTask:
    """Tests for DELETE /api/tasks/<id>."""

    def test_delete_task(self, client, sample_task, api_headers):
        response = client.delete(f"/api/tasks/{sample_task.id}", headers=api_headers)

        assert response.status_code == 200
        assert response.get_json()["task"]["id"] == sample_task.id
        assert client.get(f"/api/tasks/{sample_task.id}").status_code == 404

    def test_delete_requires_authentication(self, client, sample_task):
        assert client.delete(f"/api/tasks/{sample_task.id}").status_code == 401

    def test_delete_missing_task_returns_404(self, client, api_headers):
        assert client.delete("/api/tasks/9999", headers=api_headers).status_code == 404

    def test_delete_releases_edit_lock(self, client, sample_task, api_headers, coordinator):
        task_id = str(sample_task.id)
        coordinator.connect("editor-connection")
        coordinator.acquire(task_id, "someone-else", "Someone", "editor-connection")

        response = client.delete(f"/api/tasks/{sample_task.id}", headers=api_headers)

        assert response.status_code == 200
        assert task_id not in coordinator
