"""Tests for the fan-out endpoint."""

import pytest
from httpx import AsyncClient

from taskhive.db.repositories import NotificationRepository
from taskhive.notifications import broker


async def _get_user_id(client: AsyncClient, headers: dict) -> str:
    """Helper to get the current user's ID."""
    response = await client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200
    return response.json()["id"]


class TestFanoutValidation:
    """Tests for request validation."""

    @pytest.mark.asyncio
    async def test_fanout_unauthorized(self, client: AsyncClient):
        """Test fan-out without auth."""
        response = await client.post(
            "/api/notifications/fanout",
            json={"type": "task_update", "actorId": "x", "recipients": []},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_fanout_missing_type(self, client: AsyncClient, auth_headers: dict):
        """Test that a request without a type is rejected."""
        actor_id = await _get_user_id(client, auth_headers)
        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={"actorId": actor_id, "recipients": []},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_fanout_unknown_type(self, client: AsyncClient, auth_headers: dict):
        """Test that types outside the closed set are rejected."""
        actor_id = await _get_user_id(client, auth_headers)
        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={"type": "birthday", "actorId": actor_id, "recipients": []},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_fanout_recipients_not_list(self, client: AsyncClient, auth_headers: dict):
        """Test that recipients must be a list."""
        actor_id = await _get_user_id(client, auth_headers)
        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={"type": "task_update", "actorId": actor_id, "recipients": "everyone"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_fanout_actor_mismatch(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that callers cannot act on behalf of someone else."""
        second_id = await _get_user_id(client, second_user_headers)
        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={"type": "task_update", "actorId": second_id, "recipients": [second_id]},
        )

        assert response.status_code == 403
        listing = await client.get("/api/notifications", headers=second_user_headers)
        assert listing.json()["items"] == []


class TestFanoutDelivery:
    """Tests for writing rows through the endpoint."""

    @pytest.mark.asyncio
    async def test_fanout_success(
        self,
        client: AsyncClient,
        auth_headers: dict,
        second_user_headers: dict,
        third_user_headers: dict,
    ):
        """Test one row per recipient and none for the actor."""
        actor_id = await _get_user_id(client, auth_headers)
        second_id = await _get_user_id(client, second_user_headers)
        third_id = await _get_user_id(client, third_user_headers)

        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={
                "type": "workspace_invite",
                "actorId": actor_id,
                "recipients": [second_id, third_id, actor_id, second_id],
                "workspaceId": "ws-1",
                "meta": {"workspace_name": "Ops", "inviter_name": "Auth User"},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["ids"]) == 2
        assert "errors" not in data
        assert data["skipped"] == []

        for headers in (second_user_headers, third_user_headers):
            listing = await client.get("/api/notifications", headers=headers)
            [item] = listing.json()["items"]
            assert item["type"] == "workspace_invite"
            assert item["title"] == "You were invited to Ops"
            assert item["body"] == "Invited by Auth User"
            assert item["link"] == "/workspaces/ws-1"

        listing = await client.get("/api/notifications", headers=auth_headers)
        assert listing.json()["items"] == []

    @pytest.mark.asyncio
    async def test_fanout_partial_failure(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that one bad recipient does not block the others."""
        actor_id = await _get_user_id(client, auth_headers)
        second_id = await _get_user_id(client, second_user_headers)

        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={
                "type": "task_assigned",
                "actorId": actor_id,
                "recipients": ["no-such-user", second_id],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["ids"]) == 1
        assert set(data["errors"]) == {"no-such-user"}

        listing = await client.get("/api/notifications", headers=second_user_headers)
        assert len(listing.json()["items"]) == 1

    @pytest.mark.asyncio
    async def test_fanout_all_recipients_unknown(self, client: AsyncClient, auth_headers: dict):
        """Test that a fan-out that writes nothing for unknown users is a 400."""
        actor_id = await _get_user_id(client, auth_headers)

        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={
                "type": "task_update",
                "actorId": actor_id,
                "recipients": ["ghost1", "ghost2"],
            },
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "No notifications inserted"
        assert sorted(detail["recipients"]) == ["ghost1", "ghost2"]
        assert detail["errors"] == {
            "ghost1": "Unknown recipient",
            "ghost2": "Unknown recipient",
        }

    @pytest.mark.asyncio
    async def test_fanout_all_inserts_failed(
        self,
        client: AsyncClient,
        auth_headers: dict,
        second_user_headers: dict,
        monkeypatch,
    ):
        """Test that a fan-out whose every insert fails is a server error."""
        actor_id = await _get_user_id(client, auth_headers)
        second_id = await _get_user_id(client, second_user_headers)
        original_add = NotificationRepository.add

        async def failing_add(self, **fields):
            # Violates NOT NULL on title
            fields["title"] = None
            return await original_add(self, **fields)

        monkeypatch.setattr(NotificationRepository, "add", failing_add)

        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={"type": "task_update", "actorId": actor_id, "recipients": [second_id]},
        )

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error"] == "No notifications inserted"
        assert list(detail["errors"]) == [second_id]

        monkeypatch.undo()
        listing = await client.get("/api/notifications", headers=second_user_headers)
        assert listing.json()["items"] == []

    @pytest.mark.asyncio
    async def test_fanout_idempotency_key(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that a repeated request with the same key is a no-op."""
        actor_id = await _get_user_id(client, auth_headers)
        second_id = await _get_user_id(client, second_user_headers)
        payload = {
            "type": "task_assigned",
            "actorId": actor_id,
            "recipients": [second_id],
            "idempotencyKey": "assign-task-42",
        }

        first = await client.post(
            "/api/notifications/fanout", headers=auth_headers, json=payload
        )
        second = await client.post(
            "/api/notifications/fanout", headers=auth_headers, json=payload
        )

        assert len(first.json()["ids"]) == 1
        assert second.status_code == 200
        assert second.json()["ids"] == []
        assert second.json()["skipped"] == [second_id]

        listing = await client.get("/api/notifications", headers=second_user_headers)
        assert len(listing.json()["items"]) == 1

    @pytest.mark.asyncio
    async def test_fanout_publishes_realtime(
        self, client: AsyncClient, auth_headers: dict, second_user_headers: dict
    ):
        """Test that committed rows reach the recipient's subscribers."""
        actor_id = await _get_user_id(client, auth_headers)
        second_id = await _get_user_id(client, second_user_headers)
        received = []

        async def on_message(message):
            received.append(message)

        broker.subscribe(second_id, on_message)

        response = await client.post(
            "/api/notifications/fanout",
            headers=auth_headers,
            json={"type": "task_update", "actorId": actor_id, "recipients": [second_id]},
        )

        assert len(received) == 1
        assert received[0]["type"] == "notification.insert"
        assert received[0]["data"]["id"] == response.json()["ids"][0]
        assert received[0]["data"]["user_id"] == second_id
