"""Integration tests for the user and server resource endpoints"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from billing_resources.core.security import create_access_token
from billing_resources.models.user import UserRole
from billing_resources.services.panel_repository import PanelRepository


# ============================================================================
# Authentication
# ============================================================================

@pytest.mark.asyncio
async def test_missing_token_is_rejected(client: AsyncClient):
    response = await client.get("/api/v1/billing-resources/resources")

    assert response.status_code == 401
    assert response.json()["type"] == "missing_token"


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client: AsyncClient):
    response = await client.get(
        "/api/v1/billing-resources/resources",
        headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_for_unknown_user_is_rejected(client: AsyncClient):
    token = create_access_token(9999, UserRole.USER)

    response = await client.get(
        "/api/v1/billing-resources/resources",
        headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 401


# ============================================================================
# Own resources
# ============================================================================

@pytest.mark.asyncio
async def test_get_my_resources(client: AsyncClient, make_user, make_server, auth_headers):
    user = await make_user()
    await make_server(user, memory=1024, cpu=50)

    response = await client.get("/api/v1/billing-resources/resources", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()
    assert data["limits"]["memory_limit"] == 2048
    assert data["limits"]["user_id"] == user.id
    assert data["used"]["memory_limit"] == 1024
    assert data["used"]["server_limit"] == 1
    assert data["max_limits"]["memory_limit"] == 65536


@pytest.mark.asyncio
async def test_get_single_resource(client: AsyncClient, make_user, auth_headers):
    user = await make_user()

    response = await client.get(
        "/api/v1/billing-resources/resources/disk_limit", headers=auth_headers(user)
    )

    assert response.status_code == 200
    assert response.json() == {"resource_type": "disk_limit", "value": 4096}


@pytest.mark.asyncio
async def test_get_invalid_resource_type(client: AsyncClient, make_user, auth_headers):
    user = await make_user()

    response = await client.get(
        "/api/v1/billing-resources/resources/gpu_limit", headers=auth_headers(user)
    )

    assert response.status_code == 400
    assert "memory_limit" in response.json()["detail"]


@pytest.mark.asyncio
async def test_get_my_servers(client: AsyncClient, make_user, make_server, add_children, auth_headers):
    user = await make_user()
    server = await make_server(user, memory=512, backup_limit=2)
    await add_children(server, backups=1)

    response = await client.get("/api/v1/billing-resources/servers", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()
    assert len(data["servers"]) == 1
    assert data["servers"][0]["backups"] == 1
    assert data["available"]["memory_limit"] == 1536


# ============================================================================
# Server resources
# ============================================================================

@pytest.mark.asyncio
async def test_get_server_resources(client: AsyncClient, make_user, make_server, auth_headers):
    user = await make_user()
    server = await make_server(user, memory=1024)

    response = await client.get(
        f"/api/v1/servers/{server.uuid_short}/billing-resources", headers=auth_headers(user)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["server"]["resources"]["memory"] == 1024
    assert data["available"]["memory_limit"] == 1024
    assert data["available_for_edit"]["memory_limit"] == 2048
    assert data["total_overflow"]["has_overflow"] is False


@pytest.mark.asyncio
async def test_unknown_server(client: AsyncClient, make_user, auth_headers):
    user = await make_user()

    response = await client.get("/api/v1/servers/deadbeef/billing-resources", headers=auth_headers(user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_other_users_server_is_forbidden(client: AsyncClient, make_user, make_server, auth_headers):
    owner = await make_user()
    intruder = await make_user()
    server = await make_server(owner, memory=1024)

    response = await client.patch(
        f"/api/v1/servers/{server.uuid_short}/billing-resources",
        json={"memory": 512},
        headers=auth_headers(intruder)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_server_memory(client: AsyncClient, make_user, make_server, panel, auth_headers):
    user = await make_user()
    server = await make_server(user, memory=1024)

    response = await client.patch(
        f"/api/v1/servers/{server.uuid_short}/billing-resources",
        json={"memory": 2048, "cpu": None},
        headers=auth_headers(user)
    )

    assert response.status_code == 200
    assert response.json() == {"server_id": server.id, "updated": {"memory": 2048}}
    assert (await panel.get_server_by_id(server.id)).memory == 2048


@pytest.mark.asyncio
async def test_update_server_over_limit(client: AsyncClient, make_user, make_server, auth_headers):
    user = await make_user()
    server = await make_server(user, memory=1024)

    response = await client.patch(
        f"/api/v1/servers/{server.uuid_short}/billing-resources",
        json={"memory": 2049},
        headers=auth_headers(user)
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["errors"] == ["Memory exceeds your total limit. Limit: 2048 MB"]


@pytest.mark.asyncio
async def test_update_server_blocked_by_overflow(client: AsyncClient, make_user, make_server, auth_headers):
    user = await make_user()
    server = await make_server(user, memory=1024)
    await make_server(user, memory=1024)

    response = await client.patch(
        f"/api/v1/servers/{server.uuid_short}/billing-resources",
        json={"memory": 512},
        headers=auth_headers(user)
    )

    assert response.status_code == 403
    error = response.json()["error"]
    assert error["code"] == "RESOURCE_OVERFLOW"
    assert error["message"] == (
        "Resource limits exceeded. Please reduce resource usage before making changes. "
        "Overflow: server_limit (2 / 1)"
    )


@pytest.mark.asyncio
async def test_update_server_without_fields(client: AsyncClient, make_user, make_server, auth_headers):
    user = await make_user()
    server = await make_server(user, memory=1024)

    response = await client.patch(
        f"/api/v1/servers/{server.uuid_short}/billing-resources",
        json={},
        headers=auth_headers(user)
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "NO_UPDATES"


@pytest.mark.asyncio
async def test_update_server_storage_failure(
    client: AsyncClient, make_user, make_server, auth_headers, monkeypatch
):
    user = await make_user()
    server = await make_server(user, memory=1024)
    url = f"/api/v1/servers/{server.uuid_short}/billing-resources"
    headers = auth_headers(user)

    async def lost_connection(self, server_id, fields):
        raise OperationalError("UPDATE", {}, Exception("connection lost"))

    monkeypatch.setattr(PanelRepository, "update_server_fields", lost_connection)

    response = await client.patch(url, json={"memory": 600}, headers=headers)

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "UPDATE_FAILED"
    assert error["message"] == "Failed to update server resources"
