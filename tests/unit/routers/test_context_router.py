"""Tests for context API endpoints."""

from unittest.mock import AsyncMock, patch

import pytest

from core.persistence import PersistenceError
from tests.utils.store_test_utils import read_json

BASE = "/api/mcp/context"


async def create(client, **overrides) -> dict:
    body = {"ownerId": "agent_1", "type": "chat_history", "initialData": {"chat_history": []}}
    body.update(overrides)
    response = await client.post(BASE, json=body)
    assert response.status_code == 201
    return response.json()


class TestCreateContext:
    """Tests for POST /api/mcp/context."""

    @pytest.mark.asyncio
    async def test_create_returns_record(self, async_client, context_file):
        response = await async_client.post(
            BASE,
            json={"ownerId": "agent_1", "type": "chat_history", "initialData": {"a": 1}, "metadata": {"m": 1}},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["ownerId"] == "agent_1"
        assert data["type"] == "chat_history"
        assert data["data"] == {"a": 1}
        assert data["metadata"] == {"m": 1}
        assert data["createdAt"] == data["updatedAt"]
        assert data["id"] in read_json(context_file)

    @pytest.mark.asyncio
    async def test_create_without_initial_data(self, async_client):
        response = await async_client.post(BASE, json={"ownerId": "u", "type": "generic_session"})

        assert response.status_code == 201
        assert response.json()["data"] == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"type": "chat_history"},
            {"ownerId": "agent_1"},
            {"ownerId": "", "type": "chat_history"},
            {"ownerId": "agent_1", "type": ""},
        ],
    )
    async def test_create_requires_owner_and_type(self, async_client, context_store, body):
        response = await async_client.post(BASE, json=body)

        assert response.status_code == 422
        assert len(context_store) == 0

    @pytest.mark.asyncio
    async def test_storage_failure_returns_500(self, async_client, context_store):
        failing = AsyncMock(side_effect=PersistenceError("disk full", "x"))
        with patch("core.services.context_service.write_snapshot", new=failing):
            response = await async_client.post(BASE, json={"ownerId": "u", "type": "t"})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "IOError"
        assert len(context_store) == 0


class TestGetContext:
    """Tests for GET /api/mcp/context/{id}."""

    @pytest.mark.asyncio
    async def test_get_existing(self, async_client):
        created = await create(async_client)

        response = await async_client.get(f"{BASE}/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    @pytest.mark.asyncio
    async def test_get_missing_returns_404(self, async_client):
        response = await async_client.get(f"{BASE}/does-not-exist")

        assert response.status_code == 404
        assert response.json()["detail"] == "Context not found"


class TestListContexts:
    """Tests for GET /api/mcp/context."""

    @pytest.mark.asyncio
    async def test_list_filters(self, async_client):
        await create(async_client, ownerId="agent_1", type="chat_history")
        await create(async_client, ownerId="agent_1", type="reasoning_agent_memory")
        await create(async_client, ownerId="agent_2", type="chat_history")

        everything = await async_client.get(BASE)
        by_owner = await async_client.get(BASE, params={"ownerId": "agent_1"})
        by_type = await async_client.get(BASE, params={"ownerId": "agent_1", "type": "chat_history"})

        assert len(everything.json()["contexts"]) == 3
        assert len(by_owner.json()["contexts"]) == 2
        assert [c["type"] for c in by_type.json()["contexts"]] == ["chat_history"]


class TestUpdateContext:
    """Tests for PUT /api/mcp/context/{id}."""

    @pytest.mark.asyncio
    async def test_update_replaces_data(self, async_client):
        created = await create(async_client, initialData={"keep": 1, "drop": 2}, metadata={"a": 1})

        response = await async_client.put(
            f"{BASE}/{created['id']}", json={"data": {"keep": 2}, "metadata": {"b": 2}}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["data"] == {"keep": 2}
        assert data["metadata"] == {"a": 1, "b": 2}
        assert data["createdAt"] == created["createdAt"]

    @pytest.mark.asyncio
    async def test_update_requires_data(self, async_client):
        created = await create(async_client)

        response = await async_client.put(f"{BASE}/{created['id']}", json={"metadata": {"x": 1}})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_update_missing_returns_404(self, async_client):
        response = await async_client.put(f"{BASE}/nope", json={"data": {}})

        assert response.status_code == 404


class TestAppendToList:
    """Tests for POST /api/mcp/context/{id}/append."""

    @pytest.mark.asyncio
    async def test_append_in_order(self, async_client):
        created = await create(async_client)
        url = f"{BASE}/{created['id']}/append"

        await async_client.post(url, json={"listKey": "chat_history", "item": {"role": "user", "content": "x"}})
        response = await async_client.post(
            url, json={"listKey": "chat_history", "item": {"role": "assistant", "content": "y"}}
        )

        assert response.status_code == 200
        assert [m["content"] for m in response.json()["data"]["chat_history"]] == ["x", "y"]

    @pytest.mark.asyncio
    async def test_append_null_item(self, async_client):
        created = await create(async_client)

        response = await async_client.post(
            f"{BASE}/{created['id']}/append", json={"listKey": "events", "item": None}
        )

        assert response.status_code == 200
        assert response.json()["data"]["events"] == [None]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"item": 1}, {"listKey": "events"}, {"listKey": "", "item": 1}])
    async def test_append_validation(self, async_client, body):
        created = await create(async_client)

        response = await async_client.post(f"{BASE}/{created['id']}/append", json=body)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_append_to_non_object_data_returns_409(self, async_client):
        created = await create(async_client, initialData=[1, 2])

        response = await async_client.post(f"{BASE}/{created['id']}/append", json={"listKey": "k", "item": 3})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_append_missing_returns_404(self, async_client):
        response = await async_client.post(f"{BASE}/nope/append", json={"listKey": "k", "item": 1})

        assert response.status_code == 404


class TestDeleteContext:
    """Tests for DELETE /api/mcp/context/{id}."""

    @pytest.mark.asyncio
    async def test_delete_then_get_404(self, async_client, context_file):
        created = await create(async_client)

        response = await async_client.delete(f"{BASE}/{created['id']}")

        assert response.status_code == 204
        assert (await async_client.get(f"{BASE}/{created['id']}")).status_code == 404
        assert created["id"] not in read_json(context_file)

    @pytest.mark.asyncio
    async def test_delete_missing_returns_404(self, async_client):
        response = await async_client.delete(f"{BASE}/nope")

        assert response.status_code == 404
