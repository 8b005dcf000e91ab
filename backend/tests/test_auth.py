import pytest
from sqlalchemy import select

from app.core.db import SessionLocal
from app.models.audit import AuditLog
from app.models.user import Role, User

from conftest import OWNER_EMAIL, OWNER_PASSWORD, create_user, login


@pytest.mark.anyio
async def test_login_sets_http_only_cookies(client, owner):
    response = await login(client, OWNER_EMAIL, OWNER_PASSWORD)
    assert response.status_code == 200
    body = response.json()
    assert body["user"] == {"id": owner.id, "email": OWNER_EMAIL, "role": "OWNER"}
    assert body["accessToken"]

    set_cookie = response.headers.get_list("set-cookie")
    access = next(c for c in set_cookie if c.startswith("accessToken="))
    refresh = next(c for c in set_cookie if c.startswith("refreshToken="))
    assert "HttpOnly" in access and "Max-Age=900" in access
    assert "HttpOnly" in refresh and f"Max-Age={7 * 24 * 3600}" in refresh

    async with SessionLocal() as session:
        user = await session.scalar(select(User).where(User.id == owner.id))
        assert user.refresh_token_hash
        assert user.last_login_at is not None
        actions = (await session.scalars(select(AuditLog.action))).all()
    assert "LOGIN" in actions


@pytest.mark.anyio
async def test_login_email_is_case_insensitive(client, owner):
    response = await login(client, OWNER_EMAIL.upper(), OWNER_PASSWORD)
    assert response.status_code == 200


@pytest.mark.anyio
async def test_login_rejects_bad_password(client, owner):
    response = await login(client, OWNER_EMAIL, "nope")
    assert response.status_code == 401
    body = response.json()
    assert body["detail"] == "Invalid credentials"
    assert body["statusCode"] == 401
    assert body["path"] == "/api/auth/login"

    async with SessionLocal() as session:
        actions = (await session.scalars(select(AuditLog.action))).all()
    assert actions == ["LOGIN_FAILED"]


@pytest.mark.anyio
async def test_login_unknown_user(client, db):
    response = await login(client, "ghost@portfolio.com", "whatever")
    assert response.status_code == 401


@pytest.mark.anyio
async def test_login_inactive_user(client, db):
    await create_user("off@portfolio.com", "Passw0rd!", Role.VIEWER, active=False)
    response = await login(client, "off@portfolio.com", "Passw0rd!")
    assert response.status_code == 401
    assert response.json()["detail"] == "User account is deactivated"


@pytest.mark.anyio
async def test_me_with_cookie(client, owner):
    await login(client, OWNER_EMAIL, OWNER_PASSWORD)
    response = await client.get("/api/auth/me")
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == OWNER_EMAIL
    assert body["active"] is True
    assert "passwordHash" not in body and "password_hash" not in body


@pytest.mark.anyio
async def test_me_requires_authentication(client, db):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401


@pytest.mark.anyio
async def test_refresh_rotates_tokens(client, owner):
    await login(client, OWNER_EMAIL, OWNER_PASSWORD)
    old_refresh = client.cookies.get("refreshToken")

    response = await client.post("/api/auth/refresh")
    assert response.status_code == 200
    assert response.json()["accessToken"]
    new_refresh = client.cookies.get("refreshToken")
    assert new_refresh and new_refresh != old_refresh

    # The rotated-out token no longer works
    client.cookies.clear()
    client.cookies.set("refreshToken", old_refresh)
    replay = await client.post("/api/auth/refresh")
    assert replay.status_code == 401
    assert replay.json()["detail"] == "Invalid refresh token"


@pytest.mark.anyio
async def test_refresh_without_cookie(client, db):
    response = await client.post("/api/auth/refresh")
    assert response.status_code == 401
    assert response.json()["detail"] == "Refresh token not found. Please login again."


@pytest.mark.anyio
async def test_refresh_rejects_access_token(client, owner):
    await login(client, OWNER_EMAIL, OWNER_PASSWORD)
    access = client.cookies.get("accessToken")
    client.cookies.clear()
    client.cookies.set("refreshToken", access)
    response = await client.post("/api/auth/refresh")
    assert response.status_code == 401


@pytest.mark.anyio
async def test_logout_revokes_refresh_token(client, owner):
    await login(client, OWNER_EMAIL, OWNER_PASSWORD)
    refresh_token = client.cookies.get("refreshToken")

    response = await client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}
    assert client.cookies.get("accessToken") is None

    async with SessionLocal() as session:
        user = await session.scalar(select(User).where(User.id == owner.id))
        assert user.refresh_token_hash is None

    client.cookies.clear()
    client.cookies.set("refreshToken", refresh_token)
    assert (await client.post("/api/auth/refresh")).status_code == 401


@pytest.mark.anyio
async def test_change_password(client, owner):
    await login(client, OWNER_EMAIL, OWNER_PASSWORD)

    weak = await client.post(
        "/api/auth/change-password",
        json={"oldPassword": OWNER_PASSWORD, "newPassword": "weakpass"},
    )
    assert weak.status_code == 400

    wrong = await client.post(
        "/api/auth/change-password",
        json={"oldPassword": "not-it", "newPassword": "N3w!Password"},
    )
    assert wrong.status_code == 400

    ok = await client.post(
        "/api/auth/change-password",
        json={"oldPassword": OWNER_PASSWORD, "newPassword": "N3w!Password"},
    )
    assert ok.status_code == 200

    client.cookies.clear()
    assert (await login(client, OWNER_EMAIL, OWNER_PASSWORD)).status_code == 401
    assert (await login(client, OWNER_EMAIL, "N3w!Password")).status_code == 200
