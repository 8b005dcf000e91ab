import pytest

from conftest import VIEWER_EMAIL, VIEWER_PASSWORD, login


@pytest.mark.anyio
async def test_owner_creates_and_lists_users(client, owner_headers):
    response = await client.post(
        "/api/users",
        json={"email": "New@Portfolio.com", "password": "Passw0rd!", "role": "VIEWER"},
        headers=owner_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new@portfolio.com"
    assert body["role"] == "VIEWER"
    assert "password" not in body and "passwordHash" not in body
    assert "refreshTokenHash" not in body

    duplicate = await client.post(
        "/api/users",
        json={"email": "new@portfolio.com", "password": "Passw0rd!"},
        headers=owner_headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "User with this email already exists"

    listing = await client.get("/api/users", headers=owner_headers)
    assert listing.status_code == 200
    assert {u["email"] for u in listing.json()} == {"owner@portfolio.com", "new@portfolio.com"}


@pytest.mark.anyio
async def test_invalid_email_rejected(client, owner_headers):
    response = await client.post(
        "/api/users",
        json={"email": "not-an-email", "password": "Passw0rd!"},
        headers=owner_headers,
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_viewer_cannot_manage_users(client, viewer_headers):
    response = await client.post(
        "/api/users",
        json={"email": "x@portfolio.com", "password": "Passw0rd!"},
        headers=viewer_headers,
    )
    assert response.status_code == 403
    assert (await client.get("/api/users", headers=viewer_headers)).status_code == 403


@pytest.mark.anyio
async def test_get_user_self_or_owner(client, owner, viewer, viewer_headers):
    own = await client.get(f"/api/users/{viewer.id}", headers=viewer_headers)
    assert own.status_code == 200
    assert own.json()["id"] == viewer.id

    other = await client.get(f"/api/users/{owner.id}", headers=viewer_headers)
    assert other.status_code == 403


@pytest.mark.anyio
async def test_get_missing_user(client, owner_headers):
    response = await client.get("/api/users/does-not-exist", headers=owner_headers)
    assert response.status_code == 404


@pytest.mark.anyio
async def test_deactivation_blocks_login_and_refresh(client, owner_headers, viewer):
    await login(client, VIEWER_EMAIL, VIEWER_PASSWORD)
    viewer_refresh = client.cookies.get("refreshToken")
    client.cookies.clear()

    response = await client.patch(
        f"/api/users/{viewer.id}/status", json={"active": False}, headers=owner_headers
    )
    assert response.status_code == 200
    assert response.json()["active"] is False

    assert (await login(client, VIEWER_EMAIL, VIEWER_PASSWORD)).status_code == 401
    client.cookies.clear()
    client.cookies.set("refreshToken", viewer_refresh)
    assert (await client.post("/api/auth/refresh")).status_code == 401
