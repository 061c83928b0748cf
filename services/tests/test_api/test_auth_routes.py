"""Tests for the sign-up and sign-in endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from securemind.auth.sessions import Session
from securemind.db.models import AuditLog, utc_now


@pytest.fixture(autouse=True)
def fake_sessions():
    async def _create(uid, email):
        now = utc_now().isoformat()
        return Session(
            session_id="sid",
            uid=uid,
            email=email,
            created_at=now,
            expires_at=now,
            last_active_at=now,
            token="refresh-token",
        )

    with (
        patch("securemind.services.login_service.create_session", side_effect=_create),
        patch(
            "securemind.services.login_service.revoke_session",
            new_callable=AsyncMock,
            return_value=True,
        ) as revoke,
    ):
        yield revoke


class TestAuthEndpoints:
    @pytest.mark.asyncio
    async def test_signup_then_login(self, async_client, db_session):
        signup = await async_client.post(
            "/api/v1/auth/signup", json={"email": "new@example.com", "password": "hunter22"}
        )
        assert signup.status_code == 201
        body = signup.json()
        assert body["role"] == "user"
        assert body["refreshToken"] == "refresh-token"
        assert body["idToken"]

        login = await async_client.post(
            "/api/v1/auth/login", json={"email": "new@example.com", "password": "hunter22"}
        )
        assert login.status_code == 200
        assert login.json()["uid"] == body["uid"]

        result = await db_session.execute(select(AuditLog.action))
        assert set(result.scalars().all()) >= {"signup", "login"}

    @pytest.mark.asyncio
    async def test_bad_password_is_audited(self, async_client, db_session):
        response = await async_client.post(
            "/api/v1/auth/login", json={"email": "nobody@example.com", "password": "x"}
        )

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid email or password"}
        audit = await db_session.scalar(select(AuditLog).where(AuditLog.action == "login_failed"))
        assert audit.success is False

    @pytest.mark.asyncio
    async def test_weak_password(self, async_client):
        response = await async_client.post(
            "/api/v1/auth/signup", json={"email": "new@example.com", "password": "123"}
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Password is too weak"}

    @pytest.mark.asyncio
    async def test_logout(self, async_client, fake_sessions):
        response = await async_client.post(
            "/api/v1/auth/logout", json={"refreshToken": "refresh-token"}
        )

        assert response.json() == {"ok": True}
        fake_sessions.assert_awaited_once_with("refresh-token")
