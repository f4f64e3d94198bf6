"""Tests for the register action."""

from __future__ import annotations

import json

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from finalexam.auth.jwt import verify_token
from finalexam.db.models import User
from tests.conftest import PASSWORD, call, register


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_returns_user_and_token(self, client: AsyncClient):
        response = await call(
            client, "register", {"email": "alice@x.com", "username": "alice", "password": PASSWORD}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["user"] == {
            "id": body["user"]["id"],
            "email": "alice@x.com",
            "username": "alice",
            "avatar": "",
            "points": 0,
            "rank": 999,
            "gamesPlayed": 0,
            "wins": 0,
        }
        assert verify_token(body["token"]) == body["user"]["id"]

    @pytest.mark.asyncio
    async def test_password_hash_never_returned(self, client: AsyncClient):
        body = await register(client, "alice")
        assert "passwordHash" not in body["user"]
        assert "password_hash" not in body["user"]

    @pytest.mark.asyncio
    async def test_email_is_stored_lowercased(self, client: AsyncClient, db_session):
        body = (
            await call(client, "register", {"email": "Alice@X.COM", "username": "alice", "password": PASSWORD})
        ).json()
        assert body["user"]["email"] == "alice@x.com"
        user = (await db_session.execute(select(User))).scalar_one()
        assert user.email == "alice@x.com"
        assert user.password_hash.startswith("pbkdf2:")

    @pytest.mark.asyncio
    async def test_avatar_is_kept_and_truncated(self, client: AsyncClient):
        body = await register(client, "alice", avatar="https://img/" + "a" * 600)
        assert len(body["user"]["avatar"]) == 500

    @pytest.mark.asyncio
    async def test_client_supplied_user_id_is_ignored(self, client: AsyncClient):
        body = await register(client, "alice", userId="forged-id")
        assert body["user"]["id"] != "forged-id"

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client: AsyncClient):
        await register(client, "alice")
        response = await call(
            client, "register", {"email": "ALICE@x.com", "username": "alice2", "password": PASSWORD}
        )
        assert response.status_code == 409
        assert response.json() == {"error": "Email or username already taken"}

    @pytest.mark.asyncio
    async def test_duplicate_username_conflicts(self, client: AsyncClient):
        await register(client, "alice")
        response = await call(
            client, "register", {"email": "other@x.com", "username": "alice", "password": PASSWORD}
        )
        assert response.status_code == 409


class TestRegisterValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("data", "message"),
        [
            ({"username": "alice", "password": PASSWORD}, "email must be a string"),
            ({"email": "not-an-email", "username": "alice", "password": PASSWORD}, "Invalid email format"),
            ({"email": "a@x.com", "username": "   ", "password": PASSWORD}, "username is required"),
            ({"email": "a@x.com", "username": "u" * 51, "password": PASSWORD}, "username exceeds max length of 50"),
            ({"email": "a@x.com", "username": "alice", "password": "short"}, "Password must be at least 8 characters"),
            ({"email": "a@x.com", "username": "alice", "password": "p" * 129}, "password exceeds max length of 128"),
            ({"email": "a@x.com", "username": "alice", "password": 12345678}, "password must be a string"),
        ],
    )
    async def test_invalid_input(self, client: AsyncClient, data, message):
        response = await call(client, "register", data)
        assert response.status_code == 400
        assert response.json() == {"error": message}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("field", "value"),
        [("password", r"abc\ud800defgh"), ("username", r"al\ud800ice"), ("email", r"a\ud800@x.com")],
    )
    async def test_lone_surrogate_is_rejected(self, client: AsyncClient, field, value):
        data = {"email": "a@x.com", "username": "alice", "password": "password123"}
        data[field] = "__VALUE__"
        body = json.dumps({"action": "register", "data": data}).replace("__VALUE__", value)
        response = await client.post("/api/game", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": f"{field} must be valid text"}


class TestRegisterRateLimit:
    @pytest.mark.asyncio
    async def test_sixth_registration_from_one_ip_is_limited(self, client: AsyncClient):
        for i in range(5):
            response = await call(client, "register", {"email": "bad", "username": f"u{i}", "password": PASSWORD})
            assert response.status_code == 400

        response = await call(client, "register", {"email": "ok@x.com", "username": "ok", "password": PASSWORD})
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_limit_is_per_client_ip(self, client: AsyncClient):
        for i in range(5):
            await call(client, "register", {"email": "bad", "username": f"u{i}", "password": PASSWORD})

        response = await call(
            client,
            "register",
            {"email": "ok@x.com", "username": "ok", "password": PASSWORD},
            headers={"X-Forwarded-For": "203.0.113.50"},
        )
        assert response.status_code == 200
