"""
End-to-end tests for sign-up / sign-in / sign-out and the session cookie.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from acquisitions.models.user import User

ANN = {"name": "Ann", "email": "A@x.com", "password": "longenough1"}


@pytest.mark.asyncio
async def test_sign_up_creates_account_and_normalises_email(
    async_client: AsyncClient, db_session: AsyncSession
):
    resp = await async_client.post("/api/auth/sign-up", json=ANN)

    assert resp.status_code == 201
    data = resp.json()
    assert data["message"] == "User registered successfully"
    assert data["user"]["email"] == "a@x.com"
    assert data["user"]["role"] == "user"
    assert "password" not in data["user"]

    stored = (await db_session.execute(select(User))).scalars().all()
    assert [u.email for u in stored] == ["a@x.com"]
    assert stored[0].password != ANN["password"]


@pytest.mark.asyncio
async def test_sign_up_sets_httponly_strict_cookie(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/sign-up", json=ANN)

    assert "token" in resp.cookies
    set_cookie = resp.headers.get("set-cookie")
    assert "HttpOnly" in set_cookie
    assert "samesite=strict" in set_cookie.lower()
    assert "Max-Age=54000" in set_cookie


@pytest.mark.asyncio
async def test_sign_up_duplicate_email_conflicts(async_client: AsyncClient):
    first = await async_client.post("/api/auth/sign-up", json=ANN)
    assert first.status_code == 201

    resp = await async_client.post(
        "/api/auth/sign-up",
        json={"name": "Ann Two", "email": "a@x.com", "password": "different-pass"},
    )
    assert resp.status_code == 409
    assert resp.json() == {"error": "User with this email already exists"}


@pytest.mark.asyncio
async def test_sign_up_can_request_admin_role(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/sign-up", json={**ANN, "role": "admin"})
    assert resp.status_code == 201
    assert resp.json()["user"]["role"] == "admin"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, field",
    [
        ({**ANN, "password": "short"}, "password"),
        ({**ANN, "email": "not-an-email"}, "email"),
        ({**ANN, "name": "A"}, "name"),
        ({**ANN, "role": "superuser"}, "role"),
    ],
)
async def test_sign_up_validation(async_client: AsyncClient, payload, field):
    resp = await async_client.post("/api/auth/sign-up", json=payload)

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation failed"
    assert field in [d["field"] for d in body["details"]]


@pytest.mark.asyncio
async def test_sign_in_success_sets_cookie(async_client: AsyncClient, make_user):
    await make_user(name="Ann", email="a@x.com", password="longenough1")

    resp = await async_client.post(
        "/api/auth/sign-in", json={"email": "A@X.com", "password": "longenough1"}
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == "User signed in successfully"
    assert data["user"]["name"] == "Ann"
    assert "token" in resp.cookies


@pytest.mark.asyncio
async def test_sign_in_wrong_password_and_unknown_email_look_the_same(
    async_client: AsyncClient, make_user
):
    await make_user(email="a@x.com", password="longenough1")

    wrong = await async_client.post(
        "/api/auth/sign-in", json={"email": "a@x.com", "password": "wrong-password"}
    )
    unknown = await async_client.post(
        "/api/auth/sign-in", json={"email": "ghost@x.com", "password": "longenough1"}
    )

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"error": "Invalid email or password"}


@pytest.mark.asyncio
async def test_oversized_password_gives_same_answer_for_known_and_unknown_email(
    async_client: AsyncClient, make_user
):
    await make_user(email="a@x.com", password="longenough1")
    huge = "x" * 5000

    known = await async_client.post("/api/auth/sign-in", json={"email": "a@x.com", "password": huge})
    unknown = await async_client.post(
        "/api/auth/sign-in", json={"email": "ghost@x.com", "password": huge}
    )

    assert known.status_code == unknown.status_code == 400
    assert known.json() == unknown.json()
    assert known.json()["details"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_sign_in_validation(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/sign-in", json={"email": "a@x.com"})
    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_session_cookie_authenticates_and_sign_out_clears_it(async_client: AsyncClient):
    await async_client.post("/api/auth/sign-up", json=ANN)

    listed = await async_client.get("/api/users")
    assert listed.status_code == 200

    resp = await async_client.post("/api/auth/sign-out")
    assert resp.status_code == 200
    assert resp.json() == {"message": "User signed out successfully"}
    assert "Max-Age=0" in resp.headers.get("set-cookie")

    after = await async_client.get("/api/users")
    assert after.status_code == 401
