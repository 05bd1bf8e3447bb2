"""
SpecDate Backend — Auth API Tests
===================================

What:  Registration, login, logout and the OTP endpoints over HTTP.
How:   httpx AsyncClient against the ASGI app; every test gets a fresh
       SQLite database (see conftest.py).
"""

import pytest

from app.services.otp_service import otp_service

from conftest import PASSWORD


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def registration(**overrides):
    body = {
        "name": "Alice",
        "username": "alice",
        "email": "alice@example.com",
        "mobile": "+447700900001",
        "password": PASSWORD,
        "terms_accepted": True,
        "city": "London",
        "country": "United Kingdom",
    }
    body.update(overrides)
    return body


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_returns_user_and_token(self, client):
        response = await client.post("/api/register", json=registration())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "User registered successfully."
        user = body["data"]["user"]
        assert user["username"] == "alice"
        assert user["balance"] == {"red_sparks": 2, "blue_sparks": 2}
        assert user["spark_skin"]["label"] == "alice"
        assert user["profile"]["city"] == "London"
        assert user["profile_complete"] is False
        assert body["data"]["token"]

    @pytest.mark.asyncio
    async def test_token_works_immediately(self, client):
        token = (await client.post("/api/register", json=registration())).json()["data"]["token"]
        response = await client.get("/api/user", headers=auth(token))
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_fields(self, client):
        await client.post("/api/register", json=registration())
        response = await client.post(
            "/api/register",
            json=registration(mobile="+447700900002"),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        errors = body["details"]["errors"]
        assert errors["username"] == ["The username has already been taken."]
        assert errors["email"] == ["The email has already been taken."]
        assert "mobile" not in errors

    @pytest.mark.asyncio
    async def test_invalid_body(self, client):
        response = await client.post(
            "/api/register",
            json=registration(email="not-an-email", password="short"),
        )
        assert response.status_code == 422
        errors = response.json()["details"]["errors"]
        assert "email" in errors
        assert "password" in errors

    @pytest.mark.asyncio
    async def test_register_with_verified_code(self, client):
        code = otp_service.store.issue("email", "alice@example.com")
        response = await client.post(
            "/api/register",
            json=registration(otp_code=code, channel="email", target="alice@example.com"),
        )
        assert response.status_code == 201
        # consumed by registration
        assert not otp_service.verify("email", "alice@example.com", code)

    @pytest.mark.asyncio
    async def test_register_with_wrong_code(self, client):
        otp_service.store.issue("email", "alice@example.com")
        response = await client.post(
            "/api/register",
            json=registration(otp_code="000000", channel="email", target="alice@example.com"),
        )
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Invalid or expired verification code."
        assert "otp_code" in body["details"]["errors"]


class TestLogin:

    @pytest.mark.asyncio
    async def test_login(self, client, make_user):
        await make_user("bob")
        response = await client.post("/api/login", json={"email": "bob@example.com", "password": PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "User logged in successfully."
        assert body["data"]["user"]["profile_complete"] is True

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, make_user):
        await make_user("bob")
        response = await client.post("/api/login", json={"email": "bob@example.com", "password": "nope-nope"})
        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "unauthenticated"
        assert body["message"] == "Unauthorised."

    @pytest.mark.asyncio
    async def test_unknown_email(self, client):
        response = await client.post("/api/login", json={"email": "ghost@example.com", "password": PASSWORD})
        assert response.status_code == 401


class TestTokens:

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/user")
        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get("/api/user", headers=auth("not.a.jwt"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, client, make_user):
        _, token = await make_user("bob")
        response = await client.post("/api/logout", headers=auth(token))
        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully."

        assert (await client.get("/api/user", headers=auth(token))).status_code == 401

    @pytest.mark.asyncio
    async def test_login_after_logout_issues_fresh_token(self, client, make_user):
        _, old = await make_user("bob")
        await client.post("/api/logout", headers=auth(old))
        login = await client.post("/api/login", json={"email": "bob@example.com", "password": PASSWORD})
        fresh = login.json()["data"]["token"]
        assert (await client.get("/api/user", headers=auth(fresh))).status_code == 200


class TestOtp:

    @pytest.mark.asyncio
    async def test_request_without_provider(self, client):
        response = await client.post("/api/request-otp", json={"channel": "email", "target": "a@example.com"})
        assert response.status_code == 200
        assert "check server logs" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_request_rejects_bad_email(self, client):
        response = await client.post("/api/request-otp", json={"channel": "email", "target": "nope"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_verify(self, client):
        code = otp_service.store.issue("mobile", "+447700900009")
        response = await client.post(
            "/api/verify-otp",
            json={"channel": "mobile", "target": "+447700900009", "code": code},
        )
        assert response.status_code == 200
        assert response.json()["data"] == {"verified": True}

    @pytest.mark.asyncio
    async def test_verify_wrong_code(self, client):
        otp_service.store.issue("mobile", "+447700900009")
        response = await client.post(
            "/api/verify-otp",
            json={"channel": "mobile", "target": "+447700900009", "code": "000000"},
        )
        assert response.json()["data"] == {"verified": False}
        assert response.json()["message"] == "Invalid or expired code."
