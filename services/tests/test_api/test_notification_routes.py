"""Tests for the notification and fact endpoints."""

import uuid

import pytest

from securemind.auth.sessions import IdentityToken
from securemind.db.models import Fact


class TestBroadcastEndpoints:
    @pytest.mark.asyncio
    async def test_fact_broadcast_to_users(self, async_client, caller, admin_identity):
        caller["identity"] = admin_identity

        response = await async_client.post(
            "/api/v1/notifications/facts",
            json={"title": "t", "message": "m", "targetType": "users", "userIds": ["a", "b"]},
        )

        assert response.status_code == 200
        assert response.json() == {"count": 2}

    @pytest.mark.asyncio
    async def test_policy_requires_admin(self, async_client, caller, user_identity):
        caller["identity"] = user_identity

        response = await async_client.post(
            "/api/v1/notifications/policies",
            json={"policyId": "p1", "title": "t", "roles": ["user"]},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_policy_missing_fields(self, async_client, caller, admin_identity):
        caller["identity"] = admin_identity

        response = await async_client.post("/api/v1/notifications/policies", json={"title": "t"})

        assert response.status_code == 400
        assert response.json()["detail"] == "policyId, title, and roles are required"


class TestPublishFact:
    @pytest.mark.asyncio
    async def test_security_may_publish(self, async_client, caller, db_session):
        caller["identity"] = IdentityToken(
            uid="sec-1", email=None, session_id="s", claims={"role": "security"}
        )

        response = await async_client.post(
            "/api/v1/facts", json={"message": "Lock your screen", "roles": ["developer"]}
        )

        assert response.status_code == 201
        fact = await db_session.get(Fact, uuid.UUID(response.json()["id"]))
        assert fact.roles == ["developer"]
        assert fact.created_by == "sec-1"

    @pytest.mark.asyncio
    async def test_other_roles_forbidden(self, async_client, caller, user_identity):
        caller["identity"] = user_identity

        response = await async_client.post("/api/v1/facts", json={"message": "m"})

        assert response.status_code == 403
