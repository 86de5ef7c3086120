"""Tests for registration, tenant bootstrap and self-service user CRUD."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from taskhive.models.user import UserCreate
from taskhive.services import provisioning
from taskhive.services import users as user_service
from taskhive.services.provisioning import ProvisioningError
from taskhive.services.users import EmailTaken, register_user


async def _register(client: AsyncClient, email: str, name: str = "", **extra) -> dict:
    resp = await client.post("/api/users", json={
        "email": email,
        "password": "testpass123",
        "name": name,
        **extra,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _login(client: AsyncClient, email: str) -> dict:
    resp = await client.post("/api/users/login", json={
        "email": email,
        "password": "testpass123",
    })
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


# ── Registration ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_register_provisions_tenant(client: AsyncClient):
    data = await _register(client, "ada@example.com", name="Ada Lovelace")

    assert data["user"]["email"] == "ada@example.com"
    assert data["user"]["roles"] == ["user"]
    assert data["tenant"]["slug"] == "ada-lovelace"
    assert data["tenant"]["owner_id"] == data["user"]["id"]
    assert data["user"]["tenant_id"] == data["tenant"]["id"]


@pytest.mark.asyncio
async def test_register_defaults_name_to_email_local_part(client: AsyncClient):
    data = await _register(client, "grace@example.com")
    assert data["user"]["name"] == "grace"
    assert data["tenant"]["slug"] == "grace"


@pytest.mark.asyncio
async def test_register_cannot_grant_admin(client: AsyncClient):
    data = await _register(client, "sneaky@example.com", roles=["admin"])
    assert data["user"]["roles"] == ["user"]


@pytest.mark.asyncio
async def test_admin_can_register_admin(client: AsyncClient, admin_headers: dict):
    resp = await client.post("/api/users", json={
        "email": "second-admin@example.com",
        "password": "testpass123",
        "roles": ["admin"],
    }, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["user"]["roles"] == ["admin"]


@pytest.mark.asyncio
async def test_duplicate_email_rejected(client: AsyncClient):
    await _register(client, "dup@example.com")
    resp = await client.post("/api/users", json={
        "email": "DUP@example.com",
        "password": "testpass123",
    })
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_concurrent_duplicate_email_is_email_taken(session):
    """The pre-check passes but the insert hits the unique index."""
    body = UserCreate(email="twin@example.com", password="testpass123")
    first = await register_user(session, body, None)

    lookup = AsyncMock(side_effect=[None, first])
    with patch.object(user_service, "find_by_email", lookup):
        with pytest.raises(EmailTaken):
            await register_user(session, body, None)

    assert lookup.await_count == 2


@pytest.mark.asyncio
async def test_short_password_rejected(client: AsyncClient):
    resp = await client.post("/api/users", json={"email": "a@b.com", "password": "short"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_colliding_names_get_distinct_slugs(client: AsyncClient):
    first = await _register(client, "sam@one.com", name="Sam")
    second = await _register(client, "sam@two.com", name="Sam")
    assert first["tenant"]["slug"] == "sam"
    assert second["tenant"]["slug"] != "sam"
    assert second["tenant"]["slug"].startswith("sam-")


@pytest.mark.asyncio
async def test_registration_survives_provisioning_failure(client: AsyncClient):
    """A broken tenant store must not break sign-up."""
    with patch.object(
        provisioning, "_insert_tenant", side_effect=ProvisioningError("store down"),
    ):
        data = await _register(client, "unlucky@example.com")

    assert data["tenant"] is None
    assert data["user"]["tenant_id"] is None


# ── create-tenant ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_tenant_is_idempotent(client: AsyncClient):
    reg = await _register(client, "idem@example.com")
    headers = await _login(client, "idem@example.com")

    first = await client.post("/api/users/create-tenant", headers=headers)
    second = await client.post("/api/users/create-tenant", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["tenant"]["id"] == reg["tenant"]["id"]
    assert second.json()["tenant"]["id"] == reg["tenant"]["id"]
    assert second.json()["created"] is False
    assert second.json()["message"] == "Tenant already exists"


@pytest.mark.asyncio
async def test_create_tenant_after_failed_registration(client: AsyncClient):
    with patch.object(
        provisioning, "_insert_tenant", side_effect=ProvisioningError("store down"),
    ):
        await _register(client, "late@example.com")
        headers = await _login(client, "late@example.com")

    me = await client.get("/api/users/me", headers=headers)
    assert me.json()["tenant"] is None

    resp = await client.post("/api/users/create-tenant", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["created"] is True
    assert data["message"] is None
    assert data["user"]["tenant_id"] == data["tenant"]["id"]


@pytest.mark.asyncio
async def test_create_tenant_failure_is_reported(client: AsyncClient):
    with patch.object(
        provisioning, "_insert_tenant", side_effect=ProvisioningError("store down"),
    ):
        await _register(client, "broken@example.com")
        headers = await _login(client, "broken@example.com")
        resp = await client.post("/api/users/create-tenant", headers=headers)

    assert resp.status_code == 500
    assert resp.json()["detail"]["message"] == "Error creating tenant"


@pytest.mark.asyncio
async def test_create_tenant_requires_auth(client: AsyncClient):
    resp = await client.post("/api/users/create-tenant")
    assert resp.status_code == 401


# ── Self-service boundary ────────────────────────────────────

@pytest.mark.asyncio
async def test_member_lists_only_self(client: AsyncClient):
    await _register(client, "one@example.com")
    await _register(client, "two@example.com")
    headers = await _login(client, "one@example.com")

    resp = await client.get("/api/users", headers=headers)
    assert resp.status_code == 200
    assert [u["email"] for u in resp.json()] == ["one@example.com"]


@pytest.mark.asyncio
async def test_member_can_rename_self(client: AsyncClient):
    reg = await _register(client, "rename@example.com")
    headers = await _login(client, "rename@example.com")

    resp = await client.patch(
        f"/api/users/{reg['user']['id']}", json={"name": "New Name"}, headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "New Name"


@pytest.mark.asyncio
async def test_member_role_change_ignored(client: AsyncClient):
    reg = await _register(client, "climber@example.com")
    headers = await _login(client, "climber@example.com")

    resp = await client.patch(
        f"/api/users/{reg['user']['id']}",
        json={"roles": ["admin"]},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["roles"] == ["user"]
    assert resp.json()["tenant_id"] == reg["tenant"]["id"]


@pytest.mark.asyncio
async def test_member_cannot_move_tenant(client: AsyncClient):
    mine = await _register(client, "mover@example.com")
    other = await _register(client, "target@example.com")
    headers = await _login(client, "mover@example.com")

    resp = await client.patch(
        f"/api/users/{mine['user']['id']}",
        json={"tenant_id": other["tenant"]["id"]},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == mine["tenant"]["id"]


@pytest.mark.asyncio
async def test_member_cannot_touch_other_user(client: AsyncClient):
    await _register(client, "me@example.com")
    other = await _register(client, "them@example.com")
    headers = await _login(client, "me@example.com")
    other_id = other["user"]["id"]

    assert (await client.get(f"/api/users/{other_id}", headers=headers)).status_code == 404
    resp = await client.patch(f"/api/users/{other_id}", json={"name": "x"}, headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_member_cannot_delete_users(client: AsyncClient):
    reg = await _register(client, "selfdel@example.com")
    headers = await _login(client, "selfdel@example.com")
    resp = await client.delete(f"/api/users/{reg['user']['id']}", headers=headers)
    assert resp.status_code == 403


# ── Admin ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_manages_any_user(client: AsyncClient, admin_headers: dict):
    reg = await _register(client, "managed@example.com")
    user_id = reg["user"]["id"]

    resp = await client.get("/api/users", headers=admin_headers)
    assert {u["email"] for u in resp.json()} >= {"managed@example.com", "root@example.com"}

    resp = await client.patch(
        f"/api/users/{user_id}", json={"roles": ["admin", "user"]}, headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["roles"] == ["admin", "user"]

    resp = await client.delete(f"/api/users/{user_id}", headers=admin_headers)
    assert resp.status_code == 204
    resp = await client.get(f"/api/users/{user_id}", headers=admin_headers)
    assert resp.json()["is_active"] is False


@pytest.mark.asyncio
async def test_admin_can_relink_tenant(client: AsyncClient, admin_headers: dict):
    a = await _register(client, "a@example.com")
    b = await _register(client, "b@example.com")

    resp = await client.patch(
        f"/api/users/{a['user']['id']}",
        json={"tenant_id": b["tenant"]["id"]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == b["tenant"]["id"]
