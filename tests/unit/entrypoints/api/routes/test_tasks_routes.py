"""Tests for the task routes."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

from fastapi.testclient import TestClient

from taskcred.adapters.db.memory import InMemoryDatabase
from taskcred.core.domain_types import Task, TaskStatus
from taskcred.entrypoints.api.routes.tasks import XLSX_MEDIA_TYPE, content_disposition
from tests.fixtures.domain_objects import NOW, build_task

Headers = Callable[[str], dict[str, str]]


def seed(db: InMemoryDatabase, task: Task) -> Task:
    db.tasks.tasks[task.id] = task
    return task


class TestAuthentication:
    """Every task route requires a session."""

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/tasks")

        assert response.status_code == 401
        assert response.json() == {
            "error": {"kind": "authentication_error", "message": "Missing authentication token"}
        }
        assert response.headers["www-authenticate"] == "Bearer"

    def test_garbage_token(self, client: TestClient) -> None:
        response = client.get("/tasks", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_admin_listing_forbidden_for_users(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        response = client.get("/tasks/all", headers=auth_headers("alice"))

        assert response.status_code == 403
        assert response.json()["error"]["kind"] == "authorization_error"


class TestCreateAndRead:
    """Create, list and fetch."""

    def test_create_returns_camel_case(self, client: TestClient, auth_headers: Headers) -> None:
        response = client.post(
            "/tasks",
            json={
                "title": "Write docs",
                "description": "Document the release process",
                "dueDate": "2025-03-12T12:00:00Z",
                "visibleTo": ["bob"],
            },
            headers=auth_headers("alice"),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["owner"] == "alice"
        assert body["ownerDetails"] == {
            "id": "alice",
            "name": "Alice",
            "email": "alice@icterra.com",
        }
        assert body["status"] == "in-progress"
        assert body["isPublic"] is False
        assert body["visibleTo"] == ["bob"]
        assert body["history"][0]["action"] == "assigned"
        assert body["history"][0]["performedBy"] == "alice"
        assert "dueDate" in body and "createdAt" in body

    def test_create_unassigned(self, client: TestClient, auth_headers: Headers) -> None:
        response = client.post(
            "/tasks",
            json={"title": "Write docs", "description": "Document the release", "owner": None},
            headers=auth_headers("alice"),
        )

        assert response.status_code == 201
        assert response.json()["owner"] is None
        assert response.json()["ownerDetails"] is None
        assert response.json()["status"] == "pending"

    def test_create_rejects_unknown_field(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        response = client.post(
            "/tasks",
            json={"title": "Write docs", "description": "Document the release", "credits": 5},
            headers=auth_headers("alice"),
        )

        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "validation_error"

    def test_get_missing(self, client: TestClient, auth_headers: Headers) -> None:
        response = client.get("/tasks/nope", headers=auth_headers("alice"))

        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "not_found"

    def test_get_reclassifies_overdue(
        self, client: TestClient, auth_headers: Headers, db: InMemoryDatabase
    ) -> None:
        task = seed(
            db,
            build_task(
                owner_id="alice",
                status=TaskStatus.IN_PROGRESS,
                due_date=NOW - timedelta(hours=1),
                assigned_by="root",
            ),
        )

        response = client.get(f"/tasks/{task.id}", headers=auth_headers("alice"))

        assert response.json()["status"] == "behind-schedule"
        assert db.accounts.accounts["alice"].credits == -2

    def test_list_resolves_owner_details(
        self, client: TestClient, auth_headers: Headers, db: InMemoryDatabase
    ) -> None:
        seed(db, build_task("mine", owner_id="bob", status=TaskStatus.IN_PROGRESS))
        seed(db, build_task("orphan", owner_id="ghost", status=TaskStatus.IN_PROGRESS))

        response = client.get("/tasks", headers=auth_headers("alice"))

        details = {t["id"]: t["ownerDetails"] for t in response.json()}
        assert details == {
            "mine": {"id": "bob", "name": "Bob", "email": "bob@icterra.com"},
            "orphan": None,
        }


class TestUpdate:
    """General updates through PATCH /tasks/{id}."""

    def test_complete_earns_credits(
        self,
        client: TestClient,
        auth_headers: Headers,
        db: InMemoryDatabase,
        in_progress_task: Task,
    ) -> None:
        seed(db, in_progress_task)
        headers = auth_headers("alice")

        response = client.patch(
            f"/tasks/{in_progress_task.id}", json={"status": "completed"}, headers=headers
        )
        rank = client.get("/users/me/rank", headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert rank.json()["credits"] == 2

    def test_protected_field(
        self,
        client: TestClient,
        auth_headers: Headers,
        db: InMemoryDatabase,
        in_progress_task: Task,
    ) -> None:
        seed(db, in_progress_task)

        response = client.patch(
            f"/tasks/{in_progress_task.id}",
            json={"title": "New title", "owner": "bob"},
            headers=auth_headers("alice"),
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid updates: owner"

    def test_locked_task_status_conflict(
        self, client: TestClient, auth_headers: Headers, db: InMemoryDatabase
    ) -> None:
        task = seed(
            db,
            build_task(
                owner_id="alice",
                status=TaskStatus.BEHIND_SCHEDULE,
                due_date=NOW - timedelta(hours=1),
            ),
        )

        user_response = client.patch(
            f"/tasks/{task.id}", json={"status": "in-progress"}, headers=auth_headers("alice")
        )
        admin_response = client.patch(
            f"/tasks/{task.id}", json={"status": "in-progress"}, headers=auth_headers("root")
        )

        assert user_response.status_code == 403
        assert admin_response.status_code == 409
        assert admin_response.json()["error"]["kind"] == "state_conflict"


class TestAssignAndVisibility:
    """Ownership and visibility endpoints."""

    def test_claim(self, client: TestClient, auth_headers: Headers, db: InMemoryDatabase) -> None:
        task = seed(db, build_task(status=TaskStatus.PENDING))

        response = client.patch(
            f"/tasks/{task.id}/assign", json={"userId": "bob"}, headers=auth_headers("bob")
        )

        assert response.status_code == 200
        assert response.json()["owner"] == "bob"
        assert response.json()["status"] == "in-progress"

    def test_assign_requires_user_id(
        self, client: TestClient, auth_headers: Headers, db: InMemoryDatabase
    ) -> None:
        task = seed(db, build_task(status=TaskStatus.PENDING))

        response = client.patch(f"/tasks/{task.id}/assign", json={}, headers=auth_headers("bob"))

        assert response.status_code == 400

    def test_make_private(
        self,
        client: TestClient,
        auth_headers: Headers,
        db: InMemoryDatabase,
        in_progress_task: Task,
    ) -> None:
        seed(db, in_progress_task)

        response = client.patch(
            f"/tasks/{in_progress_task.id}/visibility",
            json={"isPublic": False},
            headers=auth_headers("alice"),
        )
        hidden = client.get(f"/tasks/{in_progress_task.id}", headers=auth_headers("bob"))

        assert response.json()["isPublic"] is False
        assert hidden.status_code == 403

    def test_delete(
        self,
        client: TestClient,
        auth_headers: Headers,
        db: InMemoryDatabase,
        in_progress_task: Task,
    ) -> None:
        seed(db, in_progress_task)

        response = client.delete(f"/tasks/{in_progress_task.id}", headers=auth_headers("alice"))

        assert response.status_code == 200
        assert response.json()["id"] == in_progress_task.id
        assert db.tasks.tasks == {}


class TestFiles:
    """Attachments and export."""

    def test_attachment_round_trip(
        self,
        client: TestClient,
        auth_headers: Headers,
        db: InMemoryDatabase,
        in_progress_task: Task,
    ) -> None:
        seed(db, in_progress_task)
        url = f"/tasks/{in_progress_task.id}/attachment"

        uploaded = client.post(
            url,
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=auth_headers("alice"),
        )
        downloaded = client.get(url, headers=auth_headers("bob"))

        assert uploaded.status_code == 200
        assert uploaded.json()["attachment"] == {
            "filename": "notes.txt",
            "contentType": "text/plain",
            "size": 5,
        }
        assert downloaded.content == b"hello"
        assert downloaded.headers["content-type"].startswith("text/plain")

    def test_download_unicode_filename(
        self,
        client: TestClient,
        auth_headers: Headers,
        db: InMemoryDatabase,
        in_progress_task: Task,
    ) -> None:
        seed(db, in_progress_task)
        url = f"/tasks/{in_progress_task.id}/attachment"
        client.post(
            url,
            files={"file": ("報告€.pdf", b"%PDF", "application/pdf")},
            headers=auth_headers("alice"),
        )

        downloaded = client.get(url, headers=auth_headers("alice"))

        assert downloaded.status_code == 200
        assert downloaded.content == b"%PDF"
        assert downloaded.headers["content-disposition"] == (
            "attachment; filename=\"___.pdf\"; "
            "filename*=UTF-8''%E5%A0%B1%E5%91%8A%E2%82%AC.pdf"
        )

    def test_export(
        self,
        client: TestClient,
        auth_headers: Headers,
        db: InMemoryDatabase,
        in_progress_task: Task,
    ) -> None:
        seed(db, in_progress_task)

        response = client.get("/tasks/export", headers=auth_headers("alice"))

        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX_MEDIA_TYPE
        assert "tasks.xlsx" in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"


def test_content_disposition_escapes_quotes() -> None:
    assert content_disposition('say "hi".txt') == (
        "attachment; filename=\"say _hi_.txt\"; filename*=UTF-8''say%20%22hi%22.txt"
    )


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "healthy"}
