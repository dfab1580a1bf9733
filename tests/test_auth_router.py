"""Tests for the authentication API router."""

from unittest.mock import AsyncMock

from sqlalchemy import select

from brokerdesk.connection import DatabaseConnectivityError
from brokerdesk.models import User, UserRole
from brokerdesk.security import create_access_token
from tests.conftest import TEST_PASSWORD, auth_headers, create_user


async def test_login_success_updates_last_login(client, db, admin_user):
    response = await client.post(
        "/auth/login", json={"email": admin_user.email, "password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["user"]["email"] == admin_user.email
    assert body["user"]["role"] == "admin"
    assert body["user"]["last_login_at"] is not None

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == str(admin_user.id)


async def test_login_wrong_password(client, admin_user):
    response = await client.post("/auth/login", json={"email": admin_user.email, "password": "nope"})
    assert response.status_code == 401


async def test_login_unknown_email(client, db):
    response = await client.post(
        "/auth/login", json={"email": "nobody@brokerdesk.lk", "password": TEST_PASSWORD}
    )
    assert response.status_code == 401


async def test_login_inactive_account(client, db):
    user = await create_user(db, role=UserRole.SALES, email="gone@brokerdesk.lk", is_active=False)
    response = await client.post("/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
    assert response.status_code == 403


async def test_login_database_unreachable_is_503(client, connection_manager, monkeypatch):
    """
    GIVEN a database that stays unreachable after retries
    WHEN a user logs in
    THEN the API answers 503 with Retry-After instead of 401 or 500
    """
    monkeypatch.setattr(
        connection_manager,
        "ensure_connection",
        AsyncMock(side_effect=DatabaseConnectivityError("Failed to connect to database after 3 attempts")),
    )

    response = await client.post(
        "/auth/login", json={"email": "someone@brokerdesk.lk", "password": TEST_PASSWORD}
    )

    assert response.status_code == 503
    assert response.headers["retry-after"] == "5"
    assert response.json()["request_id"]


async def test_me_requires_token(client):
    assert (await client.get("/auth/me")).status_code == 401


async def test_me_rejects_invalid_token(client, db):
    response = await client.get("/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


async def test_me_rejects_token_for_unknown_user(client, db):
    token = create_access_token({"sub": "00000000-0000-0000-0000-000000000000"})
    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


async def test_me_rejects_disabled_user(client, db):
    user = await create_user(db, role=UserRole.MANAGER, is_active=False)
    response = await client.get("/auth/me", headers=auth_headers(user))
    assert response.status_code == 401


async def test_admin_creates_user(client, db, admin_headers):
    payload = {
        "email": "rep@brokerdesk.lk",
        "password": "longenough1",
        "first_name": "Sam",
        "last_name": "Silva",
        "role": "sales",
    }

    response = await client.post("/auth/users", json=payload, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["role"] == "sales"

    duplicate = await client.post("/auth/users", json=payload, headers=admin_headers)
    assert duplicate.status_code == 409

    login = await client.post("/auth/login", json={"email": payload["email"], "password": payload["password"]})
    assert login.status_code == 200


async def test_non_admin_cannot_create_user(client, sales_headers):
    payload = {
        "email": "rep2@brokerdesk.lk",
        "password": "longenough1",
        "first_name": "Sam",
        "last_name": "Silva",
    }
    response = await client.post("/auth/users", json=payload, headers=sales_headers)
    assert response.status_code == 403


async def test_created_user_password_is_hashed(client, db, admin_headers):
    payload = {
        "email": "hashed@brokerdesk.lk",
        "password": "longenough1",
        "first_name": "Ana",
        "last_name": "Fernando",
        "role": "underwriter",
    }
    await client.post("/auth/users", json=payload, headers=admin_headers)

    result = await db.execute(select(User).where(User.email == payload["email"]))
    user = result.scalar_one()
    assert user.hashed_password != payload["password"]
    assert user.hashed_password.startswith("$2")
