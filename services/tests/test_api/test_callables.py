"""Tests for the callable transport envelope."""

import pytest
from sqlalchemy import func, select

from securemind.auth.sessions import IdentityToken
from securemind.db.models import IdentityAccount, Notification, UserProfile


def _url(name: str) -> str:
    return f"/api/v1/callable/{name}"


class TestEnvelope:
    @pytest.mark.asyncio
    async def test_unknown_operation(self, async_client, caller, admin_identity):
        caller["identity"] = admin_identity

        response = await async_client.post(_url("dropDatabase"), json={"data": {}})

        assert response.status_code == 404
        assert response.json()["error"]["status"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unauthenticated(self, async_client):
        response = await async_client.post(_url("setUserRole"), json={"data": {"uid": "u1"}})

        assert response.status_code == 401
        assert response.json() == {
            "error": {"status": "UNAUTHENTICATED", "message": "Sign in required"}
        }

    @pytest.mark.asyncio
    async def test_wrong_role(self, async_client, caller, user_identity):
        caller["identity"] = user_identity

        response = await async_client.post(
            _url("adminCreateUser"), json={"data": {"email": "x@example.com"}}
        )

        assert response.status_code == 403
        assert response.json() == {
            "error": {"status": "PERMISSION_DENIED", "message": "Insufficient role"}
        }

    @pytest.mark.asyncio
    async def test_role_checked_from_claim(self, async_client, caller, db_session, make_account):
        """A profile saying admin is not enough when the token claim says otherwise."""
        await make_account("u1", role="admin")
        caller["identity"] = IdentityToken(
            uid="u1", email="u1@example.com", session_id="s", claims={"role": "user"}
        )

        response = await async_client.post(_url("setUserRole"), json={"data": {"uid": "u1"}})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_schema_failure(self, async_client, caller, admin_identity):
        caller["identity"] = admin_identity

        response = await async_client.post(
            _url("adminUpdateUser"), json={"data": {"uid": "u1", "disabled": "maybe"}}
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["status"] == "INVALID_ARGUMENT"
        assert error["message"].startswith("disabled:")

    @pytest.mark.asyncio
    async def test_domain_error(self, async_client, caller, admin_identity):
        caller["identity"] = admin_identity

        response = await async_client.post(_url("adminCreateUser"), json={"data": {}})

        assert response.status_code == 400
        assert response.json()["error"] == {
            "status": "INVALID_ARGUMENT",
            "message": "email required",
        }


class TestAdminOperations:
    @pytest.fixture(autouse=True)
    def as_admin(self, caller, admin_identity):
        caller["identity"] = admin_identity

    @pytest.mark.asyncio
    async def test_create_user(self, async_client, db_session):
        response = await async_client.post(
            _url("adminCreateUser"),
            json={"data": {"email": "temp@example.com", "role": "developer", "firstName": "Dev"}},
        )

        assert response.status_code == 200
        result = response.json()["result"]
        assert result["role"] == "developer"
        profile = await db_session.get(UserProfile, result["uid"])
        assert profile.first_name == "Dev"

    @pytest.mark.asyncio
    async def test_create_user_temp_password(self, async_client, db_session):
        response = await async_client.post(
            _url("adminCreateUser"),
            json={"data": {"email": "temp@example.com", "tempPassword": "Temp-Pass-1"}},
        )

        result = response.json()["result"]
        assert result["role"] == "user"
        account = await db_session.get(IdentityAccount, result["uid"])
        assert account.password_hash is not None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, async_client, make_account):
        await make_account("u1", email="taken@example.com")

        response = await async_client.post(
            _url("adminCreateUser"), json={"data": {"email": "taken@example.com"}}
        )

        assert response.status_code == 409
        assert response.json()["error"] == {
            "status": "ALREADY_EXISTS",
            "message": "Email already exists",
        }

    @pytest.mark.asyncio
    async def test_update_user(self, async_client, make_account):
        await make_account("u1")

        response = await async_client.post(
            _url("adminUpdateUser"), json={"data": {"uid": "u1", "role": "design"}}
        )

        assert response.json() == {"result": {"ok": True, "updatedFields": ["role"]}}

    @pytest.mark.asyncio
    async def test_delete_user(self, async_client, make_account):
        await make_account("u1")

        response = await async_client.post(_url("adminDeleteUser"), json={"data": {"uid": "u1"}})

        assert response.json() == {"result": {"ok": True, "fullyDeleted": True}}

    @pytest.mark.asyncio
    async def test_set_user_role_coerces_unknown(self, async_client, make_account, revoke_sessions_mock):
        await make_account("u1", role="admin")

        response = await async_client.post(
            _url("setUserRole"), json={"data": {"uid": "u1", "role": "superuser"}}
        )

        assert response.json() == {"result": {"ok": True, "role": "user"}}
        revoke_sessions_mock.assert_awaited_once_with("u1")

    @pytest.mark.asyncio
    async def test_broadcast_fact(self, async_client, db_session, make_account):
        for uid in ("a", "b", "c"):
            await make_account(uid, role="security")
        await make_account("d", role="marketing")

        response = await async_client.post(
            _url("broadcastFactNotification"),
            json={
                "data": {
                    "title": "Tip",
                    "message": "Use a password manager",
                    "targetType": "roles",
                    "roles": ["security"],
                }
            },
        )

        assert response.json() == {"result": {"count": 3}}
        count = await db_session.scalar(select(func.count()).select_from(Notification))
        assert count == 3

    @pytest.mark.asyncio
    async def test_broadcast_invalid_target(self, async_client):
        response = await async_client.post(
            _url("broadcastFactNotification"),
            json={"data": {"title": "t", "message": "m", "targetType": "galaxy"}},
        )

        assert response.json()["error"] == {
            "status": "INVALID_ARGUMENT",
            "message": "invalid targetType",
        }

    @pytest.mark.asyncio
    async def test_broadcast_policy(self, async_client, make_account):
        await make_account("a", role="accounting")

        response = await async_client.post(
            _url("broadcastPolicyNotification"),
            json={"data": {"policyId": "p1", "title": "Expenses", "roles": ["accounting"]}},
        )

        assert response.json() == {"result": {"count": 1}}


class TestCompleteRegistration:
    @pytest.mark.asyncio
    async def test_signed_out(self, async_client):
        response = await async_client.post(_url("completeRegistration"), json={"data": {}})

        assert response.json()["error"] == {
            "status": "UNAUTHENTICATED",
            "message": "Sign in required after signup",
        }

    @pytest.mark.asyncio
    async def test_any_role_may_complete(self, async_client, caller, make_account, make_employee):
        await make_account("U1", role="user")
        await make_employee("E1", "accounting")
        caller["identity"] = IdentityToken(
            uid="U1", email="u1@example.com", session_id="s", claims={"role": "user"}
        )

        response = await async_client.post(
            _url("completeRegistration"),
            json={"data": {"employeeId": "E1", "firstName": "Ann", "lastName": "Lee"}},
        )

        assert response.json() == {"result": {"ok": True, "role": "accounting"}}

    @pytest.mark.asyncio
    async def test_unknown_employee(self, async_client, caller, user_identity):
        caller["identity"] = user_identity

        response = await async_client.post(
            _url("completeRegistration"),
            json={"data": {"employeeId": "E404", "firstName": "Ann", "lastName": "Lee"}},
        )

        assert response.status_code == 404
        assert response.json()["error"]["status"] == "NOT_FOUND"
