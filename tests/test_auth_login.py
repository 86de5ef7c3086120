"""Tests for login, logout, /me and the failed-login lockout."""

import pytest
from httpx import AsyncClient

from taskhive.core.config import get_settings


async def _register(client: AsyncClient, email: str) -> dict:
    resp = await client.post("/api/users", json={
        "email": email,
        "password": "testpass123",
    })
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient):
    """Login with valid credentials returns JWT + user + tenant."""
    await _register(client, "owner@login-ok.com")

    resp = await client.post("/api/users/login", json={
        "email": "owner@login-ok.com",
        "password": "testpass123",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert "." in data["access_token"]  # JWT has dots
    assert data["exp"] == get_settings().jwt_expire_minutes * 60
    assert data["user"]["email"] == "owner@login-ok.com"
    assert data["tenant"]["slug"] == "owner"
    assert resp.cookies.get(get_settings().auth_cookie_name) == data["access_token"]


@pytest.mark.asyncio
async def test_login_is_case_insensitive_on_email(client: AsyncClient):
    await _register(client, "mixed@example.com")
    resp = await client.post("/api/users/login", json={
        "email": "Mixed@Example.com",
        "password": "testpass123",
    })
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient):
    await _register(client, "owner@login-bad-pw.com")

    resp = await client.post("/api/users/login", json={
        "email": "owner@login-bad-pw.com",
        "password": "wrongpassword",
    })
    assert resp.status_code == 401
    assert "Invalid" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient):
    resp = await client.post("/api/users/login", json={
        "email": "nobody@nowhere.com",
        "password": "whatever123",
    })
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_lockout_after_repeated_failures(client: AsyncClient):
    await _register(client, "locked@example.com")
    attempts = get_settings().max_login_attempts

    for _ in range(attempts):
        resp = await client.post("/api/users/login", json={
            "email": "locked@example.com",
            "password": "wrongpassword",
        })
        assert resp.status_code == 401

    # Even the right password is refused while locked.
    resp = await client.post("/api/users/login", json={
        "email": "locked@example.com",
        "password": "testpass123",
    })
    assert resp.status_code == 423


@pytest.mark.asyncio
async def test_successful_login_resets_failures(client: AsyncClient):
    await _register(client, "reset@example.com")
    attempts = get_settings().max_login_attempts

    for _ in range(attempts - 1):
        await client.post("/api/users/login", json={
            "email": "reset@example.com",
            "password": "wrongpassword",
        })
    ok = await client.post("/api/users/login", json={
        "email": "reset@example.com",
        "password": "testpass123",
    })
    assert ok.status_code == 200

    resp = await client.post("/api/users/login", json={
        "email": "reset@example.com",
        "password": "wrongpassword",
    })
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_with_bearer(client: AsyncClient):
    await _register(client, "bearer@example.com")
    resp = await client.post("/api/users/login", json={
        "email": "bearer@example.com",
        "password": "testpass123",
    })
    token = resp.json()["access_token"]
    client.cookies.clear()

    resp = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "bearer@example.com"
    assert data["tenant"]["slug"] == "bearer"


@pytest.mark.asyncio
async def test_me_with_cookie_then_logout(client: AsyncClient):
    await _register(client, "cookie@example.com")
    resp = await client.post("/api/users/login", json={
        "email": "cookie@example.com",
        "password": "testpass123",
    })
    assert resp.status_code == 200

    # The client's cookie jar now carries the session cookie.
    resp = await client.get("/api/users/me")
    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "cookie@example.com"

    resp = await client.post("/api/users/logout")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Logged out"

    resp = await client.get("/api/users/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient):
    resp = await client.get(
        "/api/users/me",
        headers={"Authorization": "Bearer totally.fake.token"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_stale_cookie_does_not_block_signup(client: AsyncClient):
    client.cookies.set(get_settings().auth_cookie_name, "expired.session.token")
    resp = await client.post("/api/users", json={
        "email": "fresh@example.com",
        "password": "testpass123",
    })
    client.cookies.clear()
    assert resp.status_code == 201
    assert resp.json()["user"]["roles"] == ["user"]


@pytest.mark.asyncio
async def test_missing_auth_rejected(client: AsyncClient):
    resp = await client.get("/api/users/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_deactivated_user_token_rejected(client: AsyncClient, admin_headers: dict):
    reg = await _register(client, "gone@example.com")
    resp = await client.post("/api/users/login", json={
        "email": "gone@example.com",
        "password": "testpass123",
    })
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    client.cookies.clear()

    resp = await client.delete(f"/api/users/{reg['user']['id']}", headers=admin_headers)
    assert resp.status_code == 204

    resp = await client.get("/api/users/me", headers=headers)
    assert resp.status_code == 401
