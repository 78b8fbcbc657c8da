"""Tests for Tasks API endpoints."""

import pytest
from httpx import AsyncClient


async def _get_user_id(client: AsyncClient, headers: dict) -> str:
    """Helper to get the current user's ID."""
    response = await client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200
    return response.json()["id"]


async def _setup_project(client: AsyncClient, owner_headers: dict, members: dict) -> dict:
    """Helper to create a workspace with members and a project.

    ``members`` maps role to a list of auth headers.
    """
    response = await client.post(
        "/api/workspaces", headers=owner_headers, json={"name": "Hive"}
    )
    workspace_id = response.json()["id"]

    for role, headers_list in members.items():
        for headers in headers_list:
            user_id = await _get_user_id(client, headers)
            response = await client.post(
                f"/api/workspaces/{workspace_id}/members",
                headers=owner_headers,
                json={"user_id": user_id, "role": role},
            )
            assert response.status_code == 201

    response = await client.post(
        f"/api/workspaces/{workspace_id}/projects",
        headers=owner_headers,
        json={"name": "Launch"},
    )
    assert response.status_code == 201
    return {"workspace_id": workspace_id, "project_id": response.json()["id"]}


async def _notifications_of_type(client: AsyncClient, headers: dict, type: str) -> list[dict]:
    response = await client.get("/api/notifications", headers=headers)
    return [item for item in response.json()["items"] if item["type"] == type]


class TestCreateTask:
    """Tests for task creation."""

    @pytest.mark.asyncio
    async def test_create_assigned_task(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that the assignee gets task_assigned."""
        ids = await _setup_project(client, auth_headers, {"member": [second_user_headers]})
        assignee_id = await _get_user_id(client, second_user_headers)

        response = await client.post(
            f"/api/projects/{ids['project_id']}/tasks",
            headers=auth_headers,
            json={"title": "Write launch post", "assignee_ids": [assignee_id]},
        )

        assert response.status_code == 201
        task = response.json()
        assert task["assignee_id"] == assignee_id
        assert task["status"] == "todo"

        [item] = await _notifications_of_type(client, second_user_headers, "task_assigned")
        assert item["title"] == "You were assigned 'Write launch post'"
        assert item["body"] == "Launch"
        assert item["task_id"] == task["id"]
        assert item["link"] == f"/projects/{ids['project_id']}/tasks?task={task['id']}"

    @pytest.mark.asyncio
    async def test_self_assigned_task_notifies_nobody(
        self, client: AsyncClient, auth_headers: dict
    ):
        """Test that assigning yourself writes no rows."""
        ids = await _setup_project(client, auth_headers, {})
        owner_id = await _get_user_id(client, auth_headers)

        response = await client.post(
            f"/api/projects/{ids['project_id']}/tasks",
            headers=auth_headers,
            json={"title": "Solo", "assignee_ids": [owner_id]},
        )

        assert response.status_code == 201
        listing = await client.get("/api/notifications", headers=auth_headers)
        assert listing.json()["items"] == []

    @pytest.mark.asyncio
    async def test_unassigned_task_notifies_owners_and_admins(
        self,
        client: AsyncClient,
        auth_headers: dict,
        second_user_headers: dict,
        third_user_headers: dict,
        login_as,
    ):
        """Test that an unassigned task reaches exactly owner and admins."""
        other_admin_headers = await login_as("otheradmin")
        member_headers = third_user_headers
        ids = await _setup_project(
            client,
            auth_headers,
            {"admin": [second_user_headers, other_admin_headers], "member": [member_headers]},
        )

        response = await client.post(
            f"/api/projects/{ids['project_id']}/tasks",
            headers=member_headers,
            json={"title": "Triage bugs"},
        )
        assert response.status_code == 201

        for headers in (auth_headers, second_user_headers, other_admin_headers):
            items = await _notifications_of_type(client, headers, "task_created")
            assert len(items) == 1
            assert items[0]["title"] == "Task 'Triage bugs' created"
        assert await _notifications_of_type(client, member_headers, "task_created") == []

    @pytest.mark.asyncio
    async def test_admin_creating_task_not_notified(
        self,
        client: AsyncClient,
        auth_headers: dict,
        second_user_headers: dict,
        third_user_headers: dict,
    ):
        """Test that an admin acting is excluded from the owner/admin audience."""
        ids = await _setup_project(
            client, auth_headers, {"admin": [second_user_headers, third_user_headers]}
        )

        await client.post(
            f"/api/projects/{ids['project_id']}/tasks",
            headers=second_user_headers,
            json={"title": "Plan"},
        )

        assert len(await _notifications_of_type(client, auth_headers, "task_created")) == 1
        assert len(await _notifications_of_type(client, third_user_headers, "task_created")) == 1
        assert await _notifications_of_type(client, second_user_headers, "task_created") == []

    @pytest.mark.asyncio
    async def test_assignee_must_be_member(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that outsiders cannot be assigned."""
        ids = await _setup_project(client, auth_headers, {})
        outsider_id = await _get_user_id(client, second_user_headers)

        response = await client.post(
            f"/api/projects/{ids['project_id']}/tasks",
            headers=auth_headers,
            json={"title": "Nope", "assignee_ids": [outsider_id]},
        )

        assert response.status_code == 400
        listing = await client.get("/api/notifications", headers=second_user_headers)
        assert listing.json()["items"] == []

    @pytest.mark.asyncio
    async def test_viewer_cannot_create_task(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that viewers cannot create tasks."""
        ids = await _setup_project(client, auth_headers, {"viewer": [second_user_headers]})

        response = await client.post(
            f"/api/projects/{ids['project_id']}/tasks",
            headers=second_user_headers,
            json={"title": "Nope"},
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_non_member_sees_no_project(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that non-members get 404 for a project."""
        ids = await _setup_project(client, auth_headers, {})

        response = await client.get(
            f"/api/projects/{ids['project_id']}/tasks", headers=second_user_headers
        )
        assert response.status_code == 404


class TestAssignTask:
    """Tests for reassigning tasks."""

    @pytest.mark.asyncio
    async def test_reassign_notifies_new_assignee(
        self,
        client: AsyncClient,
        auth_headers: dict,
        second_user_headers: dict,
        third_user_headers: dict,
    ):
        """Test that only the new assignee is notified."""
        ids = await _setup_project(
            client, auth_headers, {"member": [second_user_headers, third_user_headers]}
        )
        second_id = await _get_user_id(client, second_user_headers)
        third_id = await _get_user_id(client, third_user_headers)
        task = (
            await client.post(
                f"/api/projects/{ids['project_id']}/tasks",
                headers=auth_headers,
                json={"title": "Deploy", "assignee_ids": [second_id]},
            )
        ).json()

        response = await client.put(
            f"/api/tasks/{task['id']}/assignee",
            headers=auth_headers,
            json={"assignee_id": third_id},
        )

        assert response.status_code == 200
        assert response.json()["assignee_id"] == third_id
        assert len(await _notifications_of_type(client, third_user_headers, "task_assigned")) == 1
        assert len(await _notifications_of_type(client, second_user_headers, "task_assigned")) == 1

    @pytest.mark.asyncio
    async def test_same_assignee_not_renotified(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that re-assigning the same user writes nothing new."""
        ids = await _setup_project(client, auth_headers, {"member": [second_user_headers]})
        second_id = await _get_user_id(client, second_user_headers)
        task = (
            await client.post(
                f"/api/projects/{ids['project_id']}/tasks",
                headers=auth_headers,
                json={"title": "Deploy", "assignee_ids": [second_id]},
            )
        ).json()

        await client.put(
            f"/api/tasks/{task['id']}/assignee",
            headers=auth_headers,
            json={"assignee_id": second_id},
        )

        assert len(await _notifications_of_type(client, second_user_headers, "task_assigned")) == 1

    @pytest.mark.asyncio
    async def test_unassign(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test clearing the assignee."""
        ids = await _setup_project(client, auth_headers, {"member": [second_user_headers]})
        second_id = await _get_user_id(client, second_user_headers)
        task = (
            await client.post(
                f"/api/projects/{ids['project_id']}/tasks",
                headers=auth_headers,
                json={"title": "Deploy", "assignee_ids": [second_id]},
            )
        ).json()

        response = await client.put(
            f"/api/tasks/{task['id']}/assignee",
            headers=auth_headers,
            json={"assignee_id": None},
        )

        assert response.status_code == 200
        assert response.json()["assignee_id"] is None


class TestTaskStatus:
    """Tests for status changes."""

    @pytest.mark.asyncio
    async def test_status_change_notifies_assignee_and_creator(
        self,
        client: AsyncClient,
        auth_headers: dict,
        second_user_headers: dict,
        third_user_headers: dict,
    ):
        """Test that a third party's change reaches assignee and creator."""
        ids = await _setup_project(
            client, auth_headers, {"member": [second_user_headers, third_user_headers]}
        )
        second_id = await _get_user_id(client, second_user_headers)
        task = (
            await client.post(
                f"/api/projects/{ids['project_id']}/tasks",
                headers=auth_headers,
                json={"title": "Review", "assignee_ids": [second_id]},
            )
        ).json()

        response = await client.patch(
            f"/api/tasks/{task['id']}/status",
            headers=third_user_headers,
            json={"status": "in_progress"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"
        for headers in (auth_headers, second_user_headers):
            [item] = await _notifications_of_type(client, headers, "task_update")
            assert item["title"] == "'Review' moved to in_progress"
        assert await _notifications_of_type(client, third_user_headers, "task_update") == []

    @pytest.mark.asyncio
    async def test_assignee_changing_status(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that the assignee acting only notifies the creator."""
        ids = await _setup_project(client, auth_headers, {"member": [second_user_headers]})
        second_id = await _get_user_id(client, second_user_headers)
        task = (
            await client.post(
                f"/api/projects/{ids['project_id']}/tasks",
                headers=auth_headers,
                json={"title": "Review", "assignee_ids": [second_id]},
            )
        ).json()

        await client.patch(
            f"/api/tasks/{task['id']}/status",
            headers=second_user_headers,
            json={"status": "done"},
        )

        assert len(await _notifications_of_type(client, auth_headers, "task_update")) == 1
        assert await _notifications_of_type(client, second_user_headers, "task_update") == []

    @pytest.mark.asyncio
    async def test_unchanged_status_is_silent(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that setting the current status notifies nobody."""
        ids = await _setup_project(client, auth_headers, {"member": [second_user_headers]})
        second_id = await _get_user_id(client, second_user_headers)
        task = (
            await client.post(
                f"/api/projects/{ids['project_id']}/tasks",
                headers=auth_headers,
                json={"title": "Review", "assignee_ids": [second_id]},
            )
        ).json()

        response = await client.patch(
            f"/api/tasks/{task['id']}/status",
            headers=auth_headers,
            json={"status": "todo"},
        )

        assert response.status_code == 200
        assert await _notifications_of_type(client, second_user_headers, "task_update") == []

    @pytest.mark.asyncio
    async def test_invalid_status(self, client: AsyncClient, auth_headers: dict):
        """Test that unknown statuses are rejected."""
        ids = await _setup_project(client, auth_headers, {})
        task = (
            await client.post(
                f"/api/projects/{ids['project_id']}/tasks",
                headers=auth_headers,
                json={"title": "Review"},
            )
        ).json()

        response = await client.patch(
            f"/api/tasks/{task['id']}/status",
            headers=auth_headers,
            json={"status": "archived"},
        )
        assert response.status_code == 422
