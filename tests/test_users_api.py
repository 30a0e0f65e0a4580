"""
tests/test_users_api.py -- Integration tests for /api/v1/users.

Coverage:
  - Non-admins are denied every user route with "not authorized"
  - Admin lists, views, updates name/email/role
  - Role update syncs to exactly one role and applies on the next request
  - Duplicate email on update is a validation error
  - Admin self-deletion is denied with its own code and reason
  - Deleting a user removes the tasks they own
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from tasks.models import Task


class TestUserRoutesDenied:
    def test_editor_cannot_list(self, client: TestClient, actors) -> None:
        """Editors get 403 "not authorized" on GET /users."""
        resp = client.get("/api/v1/users", headers=actors.editor.headers)
        assert resp.status_code == 403
        assert resp.json()["error"] == {"code": "forbidden", "message": "not authorized", "detail": None}

    def test_viewer_cannot_view_update_or_delete(self, client: TestClient, actors) -> None:
        """Viewers get 403 on view, update and delete of another user."""
        target = actors.editor.id
        h = actors.viewer.headers
        assert client.get(f"/api/v1/users/{target}", headers=h).status_code == 403
        assert client.patch(f"/api/v1/users/{target}", json={"name": "x"}, headers=h).status_code == 403
        assert client.delete(f"/api/v1/users/{target}", headers=h).status_code == 403

    def test_policy_checked_before_existence(self, client: TestClient, actors) -> None:
        """A non-admin gets 403, not 404, for a user id that does not exist."""
        resp = client.get("/api/v1/users/424242", headers=actors.editor.headers)
        assert resp.status_code == 403

    def test_requires_auth(self, client: TestClient) -> None:
        """GET /users without credentials returns 401."""
        assert client.get("/api/v1/users").status_code == 401


class TestUserRoutesAdmin:
    def test_list_users(self, client: TestClient, actors) -> None:
        """Admin lists every user ordered by id, without password hashes."""
        resp = client.get("/api/v1/users", headers=actors.admin.headers)
        assert resp.status_code == 200
        data = resp.json()
        assert [u["email"] for u in data] == ["admin@example.com", "editor@example.com", "viewer@example.com"]
        assert data[1]["roles"] == ["editor"]
        assert "hashed_password" not in data[0]

    def test_view_user_and_404(self, client: TestClient, actors) -> None:
        """Admin views a user; an unknown id returns 404."""
        resp = client.get(f"/api/v1/users/{actors.viewer.id}", headers=actors.admin.headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Viewer"
        assert client.get("/api/v1/users/424242", headers=actors.admin.headers).status_code == 404

    def test_update_name_and_email(self, client: TestClient, actors) -> None:
        """Admin updates name and email; roles stay unchanged."""
        resp = client.put(
            f"/api/v1/users/{actors.viewer.id}",
            json={"name": "Vera", "email": "vera@example.com"},
            headers=actors.admin.headers,
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Vera"
        assert resp.json()["email"] == "vera@example.com"
        assert resp.json()["roles"] == ["viewer"]

    def test_duplicate_email_rejected(self, client: TestClient, actors) -> None:
        """Taking another user's email returns 422 validation_error."""
        resp = client.patch(
            f"/api/v1/users/{actors.viewer.id}",
            json={"email": "editor@example.com"},
            headers=actors.admin.headers,
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_email_case_change_is_saved(self, client: TestClient, actors, stores) -> None:
        """Changing only the case of a user's own email is written, not skipped."""
        user_store, _ = stores
        resp = client.patch(
            f"/api/v1/users/{actors.editor.id}",
            json={"email": "Editor@Example.com"},
            headers=actors.admin.headers,
        )
        assert resp.status_code == 200
        assert resp.json()["email"] == "Editor@Example.com"
        assert user_store.get_by_id(actors.editor.id).email == "Editor@Example.com"

    def test_email_case_variant_of_other_user_rejected(self, client: TestClient, actors) -> None:
        """Another user's email in different case is still a duplicate."""
        resp = client.patch(
            f"/api/v1/users/{actors.viewer.id}",
            json={"email": "EDITOR@example.com"},
            headers=actors.admin.headers,
        )
        assert resp.status_code == 422

    def test_unknown_role_rejected(self, client: TestClient, actors) -> None:
        """A role outside admin/editor/viewer returns 422."""
        resp = client.patch(
            f"/api/v1/users/{actors.viewer.id}",
            json={"role": "superuser"},
            headers=actors.admin.headers,
        )
        assert resp.status_code == 422

    def test_role_change_syncs_and_applies_next_request(self, client: TestClient, actors, stores) -> None:
        """A role update replaces the role set and applies to the user's existing token."""
        user_store, _ = stores
        user_store.set_roles(actors.viewer.id, ["viewer", "editor"])

        resp = client.patch(
            f"/api/v1/users/{actors.viewer.id}",
            json={"role": "editor"},
            headers=actors.admin.headers,
        )
        assert resp.status_code == 200
        assert resp.json()["roles"] == ["editor"]

        # The viewer's old token now carries editor rights.
        resp = client.post("/api/v1/tasks", json={"title": "Promoted"}, headers=actors.viewer.headers)
        assert resp.status_code == 201

    def test_update_missing_user(self, client: TestClient, actors) -> None:
        """Updating an unknown user returns 404."""
        resp = client.patch("/api/v1/users/424242", json={"name": "x"}, headers=actors.admin.headers)
        assert resp.status_code == 404

    def test_admin_cannot_delete_self(self, client: TestClient, actors, stores) -> None:
        """Admin self-deletion returns 403 self_deletion and the account survives."""
        user_store, _ = stores
        resp = client.delete(f"/api/v1/users/{actors.admin.id}", headers=actors.admin.headers)
        assert resp.status_code == 403
        error = resp.json()["error"]
        assert error["code"] == "self_deletion"
        assert error["message"] == "cannot delete own account"
        assert error["message"] != "not authorized"
        assert user_store.get_by_id(actors.admin.id) is not None

    def test_delete_user_removes_their_tasks(self, client: TestClient, actors, stores) -> None:
        """Deleting a user removes their tasks and invalidates their token."""
        user_store, task_store = stores
        task_store.create_task(Task(title="editor's", owner_id=actors.editor.id))
        task_store.create_task(Task(title="viewer's", owner_id=actors.viewer.id))

        resp = client.delete(f"/api/v1/users/{actors.editor.id}", headers=actors.admin.headers)
        assert resp.status_code == 200
        assert resp.json() == {"message": "User deleted successfully."}
        assert user_store.get_by_id(actors.editor.id) is None
        assert [t.title for t in task_store.list_tasks()] == ["viewer's"]

        # The deleted user's token no longer authenticates.
        assert client.get("/api/v1/tasks", headers=actors.editor.headers).status_code == 401

    def test_delete_missing_user(self, client: TestClient, actors) -> None:
        """Deleting an unknown user returns 404."""
        assert client.delete("/api/v1/users/424242", headers=actors.admin.headers).status_code == 404
